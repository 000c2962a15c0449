from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IP_HASH_SALT = "gecko_default_salt_change_me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    admin_username: str = Field(min_length=1)
    admin_password: str = Field(min_length=8)
    db_path: str = Field(default="/data/geckopress.sqlite", min_length=1)
    ip_hash_salt: str = Field(default=DEFAULT_IP_HASH_SALT, min_length=1)
    site_url: str = Field(default="https://geckopress.org", pattern=r"^https?://")
    blog_name: str = "GeckoPress"
    author_name: str = "GeckoPress"
    webhook_secret: str = ""
    version_file: str = "version.txt"
    rate_limit_cleanup_interval_seconds: int = Field(default=300, ge=1)


settings = Settings()
