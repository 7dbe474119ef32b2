# family_expenses/settings.py

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide configuration.

    Loaded from environment variables and the .env file. One instance is
    built by the entry point and handed to create_app(); handlers reach it
    through app.state, never through a module global.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(default="sqlite:///./expenses.db")

    # Session token
    jwt_secret: str = Field(default="change-this-secret")
    jwt_algorithm: str = Field(default="HS256")
    token_expire_days: int = Field(default=7, ge=1)
    cookie_name: str = Field(default="auth-token")
    cookie_secure: bool = Field(default=False)

    allow_signup: bool = Field(default=False, description="Enable POST /api/auth/register")
    log_level: str = Field(default="INFO")

    # Seed account for init_db
    admin_email: str = Field(default="admin@depenses.com")
    admin_username: str = Field(default="admin")
    admin_full_name: str = Field(default="Administrateur")
    admin_password: str = Field(default="admin123!")

    @property
    def token_max_age(self) -> int:
        """Cookie lifetime in seconds."""
        return self.token_expire_days * 24 * 60 * 60
