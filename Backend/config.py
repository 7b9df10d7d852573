from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Document store
    # Supabase API
    supabase_url: str = Field(..., validation_alias="SUPABASE_URL")
    supabase_key: str = Field(..., validation_alias="SUPABASE_KEY")

    # Security
    secret_key: str = Field(..., validation_alias="SECRET_KEY")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=30, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # ImageKit main account, files from 10MB up to 25MB
    imagekit_public_key: str = Field(..., validation_alias="IMAGEKIT_PUBLIC_KEY")
    imagekit_private_key: str = Field(..., validation_alias="IMAGEKIT_PRIVATE_KEY")

    # ImageKit small files account, files under 10MB
    imagekit_small_public_key: str = Field(..., validation_alias="IMAGEKIT_SMALL_PUBLIC_KEY")
    imagekit_small_private_key: str = Field(..., validation_alias="IMAGEKIT_SMALL_PRIVATE_KEY")

    # Email relay (EmailJS)
    emailjs_service_id: str = Field(default="", validation_alias="EMAILJS_SERVICE_ID")
    emailjs_template_id: str = Field(default="", validation_alias="EMAILJS_TEMPLATE_ID")
    emailjs_public_key: str = Field(default="", validation_alias="EMAILJS_PUBLIC_KEY")
    emailjs_private_key: Optional[str] = Field(default=None, validation_alias="EMAILJS_PRIVATE_KEY")
    admin_email: str = Field(default="", validation_alias="ADMIN_EMAIL")


# Missing required variables fail here, at import time, so the app never starts half-configured.
try:
    settings = Settings()
except Exception as e:
    print(f"Configuration Error: {e}")
    raise
