"""Notification content model.

Platform-agnostic message content handed to every channel. Features (the
broadcast dispatcher) build the content once per recipient; each channel
renders it for its own platform.

Uses Pydantic BaseModel for runtime validation of required fields.
"""

from typing import Optional

from pydantic import BaseModel, field_validator


class Notification(BaseModel):
    """Platform-agnostic notification message.

    Attributes:
        subject: Subject line (email), header block (chat), fallback text (SMS)
        html_body: HTML message body, converted per channel
        sms_body: Optional short text for SMS; subject is used when absent
        link_url: Optional call-to-action URL
        link_text: Optional call-to-action label
        video_url: Optional video link
        sender_name: Display name shown in the "sent by" footer
        message_url: Link to this message in the message centre
        reference: Caller reference forwarded to providers that support one

    Example:
        notification = Notification(
            subject="Schedule change",
            html_body="<p>The Friday show moves to 8pm.</p>",
            sms_body="Friday show moves to 8pm",
            message_url="https://app.example.com/messages/b1",
        )
    """

    subject: str
    html_body: str = ""
    sms_body: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    video_url: Optional[str] = None
    sender_name: Optional[str] = None
    message_url: Optional[str] = None
    reference: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        """Ensure subject is not empty."""
        if not v or not v.strip():
            raise ValueError("Notification subject cannot be empty")
        return v
