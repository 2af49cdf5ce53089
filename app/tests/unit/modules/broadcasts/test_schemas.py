import pytest
from pydantic import ValidationError

from modules.broadcasts.schemas import (
    CreateBroadcastRequest,
    Pagination,
    SendBroadcastRequest,
)


def _payload(**overrides):
    payload = {
        "title": "Friday update",
        "subject": "Schedule change",
        "bodyHtml": "<p>Moved to 8pm</p>",
        "channels": {"email": True},
    }
    payload.update(overrides)
    return payload


@pytest.mark.unit
class TestCreateBroadcastRequest:
    def test_aliases(self):
        request = CreateBroadcastRequest.model_validate(
            _payload(targetUserIds=["u1", "u2"], linkUrl="https://x.example.com")
        )
        assert request.body == "<p>Moved to 8pm</p>"
        assert request.target_user_ids == ["u1", "u2"]
        assert request.link_url == "https://x.example.com"
        assert request.scheduled_at is None

    def test_requires_a_channel(self):
        with pytest.raises(ValidationError, match="At least one channel"):
            CreateBroadcastRequest.model_validate(_payload(channels={}))

    def test_sms_requires_text(self):
        with pytest.raises(ValidationError, match="SMS text is required"):
            CreateBroadcastRequest.model_validate(_payload(channels={"sms": True}))

    def test_sms_text_length(self):
        with pytest.raises(ValidationError):
            CreateBroadcastRequest.model_validate(
                _payload(channels={"sms": True}, bodySms="x" * 161)
            )

    def test_sms_text_at_limit(self):
        request = CreateBroadcastRequest.model_validate(
            _payload(channels={"sms": True}, bodySms="x" * 160)
        )
        assert len(request.sms_body) == 160

    def test_empty_subject(self):
        with pytest.raises(ValidationError):
            CreateBroadcastRequest.model_validate(_payload(subject=""))


@pytest.mark.unit
def test_send_request_defaults_to_now():
    assert SendBroadcastRequest.model_validate({}).scheduled_at is None


@pytest.mark.unit
def test_pagination_serializes_total_pages_alias():
    data = Pagination(page=1, limit=50, total=120, totalPages=3).model_dump(
        by_alias=True
    )
    assert data == {"page": 1, "limit": 50, "total": 120, "totalPages": 3}
