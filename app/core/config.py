"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,https://shop.example.com). Empty = allow all.
    cors_origins: str = ""
    # Used to build the eBook access link sent to buyers
    public_base_url: str = "http://localhost:5000"
    port: int = 5000

    # ===========================================
    # M-PESA (Daraja API)
    # ===========================================
    mpesa_consumer_key: str  # Required, no default
    mpesa_consumer_secret: str  # Required, no default
    mpesa_shortcode: str  # Required, no default
    mpesa_passkey: str  # Required, no default
    mpesa_callback_url: str  # Required, no default
    mpesa_api_base: str = "https://api.safaricom.co.ke"
    mpesa_transaction_type: str = "CustomerPayBillOnline"
    mpesa_account_reference: str = "CIDALI Books"
    mpesa_transaction_desc: str = "Book Purchase"
    mpesa_delivery_account_reference: str = "CIDALI Books Delivery"

    # ===========================================
    # EMAIL (SMTP)
    # ===========================================
    email_user: str  # Required, no default
    email_pass: str  # Required, no default
    smtp_host: str = "mail.cidalitravel.com"
    smtp_port: int = 465
    smtp_use_ssl: bool = True  # False = plain SMTP + STARTTLS
    smtp_timeout: float = 20.0
    email_sender_name: str = "CIDALI BookStore"
    admin_email_to: str = "info@cidalitravel.com"
    admin_email_cc: str = "zekele.enterprise@gmail.com"

    # ===========================================
    # CONTENT & ENTITLEMENTS
    # ===========================================
    content_dir: str = "public"
    ebook_filename: str = "Born_Too_Soon.pdf"
    ebook_title: str = "Born Too Soon"
    entitlement_ttl_minutes: int = 30
    token_store_backend: str = "memory"  # memory, redis
    redis_url: str | None = None  # Required for token_store_backend=redis
    token_sweep_interval_seconds: int = 60  # 0 = no background sweep

    # ===========================================
    # HTTP CLIENT
    # ===========================================
    http_client_timeout: float = 30.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("mpesa_shortcode")
    @classmethod
    def validate_shortcode(cls, v: str) -> str:
        """Paybill/till numbers are digits only."""
        v = v.strip()
        if not v.isdigit():
            raise ValueError("mpesa_shortcode must be numeric")
        return v

    @field_validator("token_store_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("memory", "redis"):
            raise ValueError("token_store_backend must be 'memory' or 'redis'")
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def require_redis_url(self) -> "Settings":
        if self.token_store_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when token_store_backend=redis")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def admin_recipients(self) -> tuple[str, str | None]:
        return self.admin_email_to, (self.admin_email_cc or None)

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
