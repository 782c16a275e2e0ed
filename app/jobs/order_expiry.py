from app.logging_config import setup_logging
from app.services.order_expiry_service import run_order_expiry


if __name__ == "__main__":
    setup_logging()
    run_order_expiry()
