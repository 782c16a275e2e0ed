from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    env: str = "local"

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "design_store"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # Overrides the postgres URL (sqlite for tests / local runs)
    sqlalchemy_database_url: Optional[str] = None

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    currency: str = "USD"

    brevo_api_key: str = ""
    mail_from: str = "orders@example.com"
    store_name: str = "Design Store"
    admin_emails: List[str] = []

    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = ""

    base_url: str = "http://localhost:8000"

    order_number_prefix: str = "PD"
    download_expiry_days: int = 30
    pending_order_expiry_hours: int = 72

    @property
    def database_url(self):
        if self.sqlalchemy_database_url:
            return self.sqlalchemy_database_url

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
