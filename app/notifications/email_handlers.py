from app.services.email_service import send_email
from app.utils.template import render_template
from app.config import settings


def send_user_email(template, subject, to, context: dict) -> bool:
    html = render_template(template, **context)
    return send_email(to=to, subject=subject, html=html)


def send_admin_email(template, subject, context: dict) -> bool:
    html = render_template(template, **context)
    return send_email(to=settings.admin_emails, subject=subject, html=html)
