from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from app.database import get_session
from app.models.user import User
from app.services.download_service import authorize_download
from app.services.r2_client import FileStorage, get_file_storage
from app.dependencies.auth import get_current_user

router = APIRouter()


@router.get("/{design_file_id}/download")
def download_design_file(
    design_file_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    storage: FileStorage = Depends(get_file_storage),
):
    ticket = authorize_download(session, user=current_user, design_file_id=design_file_id)
    stored = storage.open(ticket.design_file.storage_key)

    headers = {
        "Content-Disposition": f'attachment; filename="{ticket.design_file.file_name}"',
    }
    if stored.size:
        headers["Content-Length"] = str(stored.size)
    if ticket.remaining is not None:
        headers["X-Downloads-Remaining"] = str(ticket.remaining)

    return StreamingResponse(
        stored.body,
        media_type=ticket.design_file.mime_type or stored.mime_type,
        headers=headers,
    )
