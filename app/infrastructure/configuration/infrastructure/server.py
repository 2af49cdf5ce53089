"""Server infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class ServerSettings(InfrastructureSettings):
    """Server and application runtime configuration.

    Environment Variables:
        BACKEND_URL: Backend API base URL (default: http://127.0.0.1:8000)
        SESSION_SECRET_KEY: Secret used to verify caller access tokens
        ACCESS_TOKEN_ALGORITHM: JWT signing algorithm (default: HS256)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        backend_url = settings.server.BACKEND_URL
        ```
    """

    BACKEND_URL: str = Field(default="http://127.0.0.1:8000", alias="BACKEND_URL")
    SECRET_KEY: str | None = Field(default=None, alias="SESSION_SECRET_KEY")
    ALGORITHM: str = Field(default="HS256", alias="ACCESS_TOKEN_ALGORITHM")
    ALLOWED_ORIGINS: list[str] = Field(
        default=["http://localhost:8000", "http://127.0.0.1:8000"],
        alias="ALLOWED_ORIGINS",
    )
