"""GC Notify integration settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class NotifySettings(IntegrationSettings):
    """GC Notify API configuration.

    Environment Variables:
        NOTIFY_SRE_USER_NAME: GC Notify service account username
        NOTIFY_SRE_CLIENT_SECRET: GC Notify service account secret
        NOTIFY_API_URL: GC Notify API endpoint URL
        NOTIFY_EMAIL_TEMPLATE_ID: Email template with subject/body personalisation
        NOTIFY_SMS_TEMPLATE_ID: SMS template with a message personalisation
        NOTIFY_TIMEOUT_SECONDS: HTTP timeout for a single Notify call

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        api_url = settings.notify.NOTIFY_API_URL
        username = settings.notify.NOTIFY_SRE_USER_NAME
        ```
    """

    NOTIFY_SRE_USER_NAME: str | None = Field(default=None, alias="NOTIFY_SRE_USER_NAME")
    NOTIFY_SRE_CLIENT_SECRET: str | None = Field(
        default=None, alias="NOTIFY_SRE_CLIENT_SECRET"
    )
    NOTIFY_API_URL: str = Field(default="", alias="NOTIFY_API_URL")
    NOTIFY_EMAIL_TEMPLATE_ID: str = Field(default="", alias="NOTIFY_EMAIL_TEMPLATE_ID")
    NOTIFY_SMS_TEMPLATE_ID: str = Field(default="", alias="NOTIFY_SMS_TEMPLATE_ID")
    NOTIFY_TIMEOUT_SECONDS: float = Field(default=10.0, alias="NOTIFY_TIMEOUT_SECONDS")

    @property
    def has_credentials(self) -> bool:
        """True when every value needed to call the Notify API is present."""
        return bool(
            self.NOTIFY_API_URL
            and self.NOTIFY_SRE_USER_NAME
            and self.NOTIFY_SRE_CLIENT_SECRET
        )
