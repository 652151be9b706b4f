
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Thorbis Ops API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database (Postgres in production, SQLite for local dev and tests)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./thorbis_dev.db",
        alias="DATABASE_URL",
    )
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")
    auto_create_tables: bool = Field(
        default=True, alias="AUTO_CREATE_TABLES",
    )  # Production schemas are managed by Alembic

    # Multi-tenancy default
    default_client_id: str = Field(default="default", alias="DEFAULT_CLIENT_ID")

    # Write throttling per (actor, resource)
    rate_limit_requests: int = Field(default=120, ge=1, alias="RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: int = Field(
        default=60, ge=1, alias="RATE_LIMIT_WINDOW_SECONDS",
    )

    # Actor identity headers (set by the upstream auth gateway)
    actor_id_header: str = Field(default="X-Actor-Id", alias="ACTOR_ID_HEADER")
    actor_role_header: str = Field(default="X-Actor-Role", alias="ACTOR_ROLE_HEADER")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

settings = Settings()
