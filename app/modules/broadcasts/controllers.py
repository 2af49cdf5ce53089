"""HTTP routes for broadcasts, the cron trigger and the message centre."""

import hmac
from typing import List, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request, Response, status

from api.dependencies.rate_limits import get_limiter
from infrastructure.logging import bind_request_context, get_module_logger
from infrastructure.services import SettingsDep
from modules.broadcasts.dependencies import (
    BroadcastServiceDep,
    CallerDep,
    OptionalCallerDep,
    ReceiptTrackerDep,
    SchedulerDep,
    UserDirectoryDep,
)
from modules.broadcasts.errors import (
    BroadcastError,
    BroadcastNotFoundError,
    BroadcastValidationError,
    DeliveryNotFoundError,
    StoreUnavailableError,
)
from modules.broadcasts.models import Broadcast, BroadcastStatus, User
from modules.broadcasts.permissions import Capability, has_capability
from modules.broadcasts.receipts import UserMessage
from modules.broadcasts.schemas import (
    CreateBroadcastRequest,
    CronResponse,
    DeliveryPage,
    DeliveryStatusFilter,
    MarkReadResponse,
    SendBroadcastRequest,
    SendBroadcastResponse,
    UnreadCountResponse,
    UpdateBroadcastRequest,
)
from modules.broadcasts.users import UserDirectory, resolve_identity
from server.utils import Caller

logger = get_module_logger()

router = APIRouter(tags=["Broadcasts"])
limiter = get_limiter()


def to_http_error(error: BroadcastError) -> HTTPException:
    """Map a broadcast error to the HTTP error returned to the caller."""
    if isinstance(error, (BroadcastNotFoundError, DeliveryNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, BroadcastValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, StoreUnavailableError):
        return HTTPException(status_code=503, detail="Storage temporarily unavailable")
    return HTTPException(status_code=500, detail="Internal server error")


def identify(directory: UserDirectory, caller: Caller) -> Optional[User]:
    return resolve_identity(directory, caller.sub, caller.email)


def caller_can(caller: Caller, user: Optional[User], capability: Capability) -> bool:
    """Check the stored role when the caller has a record, else the token role."""
    role = user.role if user is not None else caller.role
    return has_capability(role, capability)


def require_capability(
    directory: UserDirectory, caller: Caller, capability: Capability
) -> Optional[User]:
    try:
        user = identify(directory, caller)
    except StoreUnavailableError as e:
        raise to_http_error(e) from e
    if not caller_can(caller, user, capability):
        logger.warning(
            "broadcast_access_denied",
            subject=caller.sub,
            capability=capability.value,
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


@router.api_route(
    "/cron/send-broadcasts", methods=["GET", "POST"], response_model=CronResponse
)
@limiter.limit("30/minute")
def send_scheduled_broadcasts(
    request: Request,
    settings: SettingsDep,
    scheduler: SchedulerDep,
    authorization: Optional[str] = Header(default=None),
):
    """Run one reconciliation pass: dispatch due broadcasts and resume unfinished ones.

    Expects `Authorization: Bearer <CRON_SECRET>`.
    """
    secret = settings.broadcasts.cron_secret
    if not secret or not authorization or not hmac.compare_digest(
        authorization.encode(), f"Bearer {secret}".encode()
    ):
        logger.warning("cron_unauthorized", path=request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")

    with bind_request_context(
        request_path=request.url.path,
        request_method=request.method,
        trigger="cron",
    ):
        result = scheduler.reconcile()
    return CronResponse(processed=result.processed, errors=result.errors)


@router.post("/broadcasts", response_model=Broadcast, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_broadcast(
    request: Request,
    payload: CreateBroadcastRequest,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
):
    """Create a draft broadcast, or a scheduled one when `scheduledAt` is set."""
    user = require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    created_by = user.id if user is not None else caller.sub
    try:
        return service.create(payload, created_by)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.get("/broadcasts", response_model=List[Broadcast])
@limiter.limit("100/minute")
def list_broadcasts(
    request: Request,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
    status_filter: Optional[BroadcastStatus] = Query(default=None, alias="status"),
):
    """All broadcasts newest first, optionally filtered by `status`."""
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        return service.list(status_filter)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.put("/broadcasts/{broadcast_id}", response_model=Broadcast)
@limiter.limit("20/minute")
def update_broadcast(
    request: Request,
    broadcast_id: str,
    payload: UpdateBroadcastRequest,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
):
    """Edit a draft or scheduled broadcast. Omitted fields are left unchanged."""
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        return service.update(broadcast_id, payload)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.delete("/broadcasts/{broadcast_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
def delete_broadcast(
    request: Request,
    broadcast_id: str,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
):
    """Delete a draft. Scheduled or sent broadcasts are kept."""
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        service.delete(broadcast_id)
    except BroadcastError as e:
        raise to_http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/broadcasts/{broadcast_id}", response_model=Broadcast)
@limiter.limit("100/minute")
def get_broadcast(
    request: Request,
    broadcast_id: str,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
):
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        return service.get(broadcast_id)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.get("/broadcasts/{broadcast_id}/deliveries", response_model=DeliveryPage)
@limiter.limit("100/minute")
def list_deliveries(
    request: Request,
    broadcast_id: str,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    status_filter: Optional[str] = Query(default=None, alias="status"),
):
    """Page through a broadcast's deliveries.

    `status` may be delivered, failed, read or unread; any other value is
    ignored.
    """
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        delivery_filter = DeliveryStatusFilter(status_filter) if status_filter else None
    except ValueError:
        delivery_filter = None
    try:
        return service.list_deliveries(broadcast_id, page, limit, delivery_filter)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.post("/broadcasts/{broadcast_id}/send", response_model=SendBroadcastResponse)
@limiter.limit("20/minute")
def send_broadcast(
    request: Request,
    broadcast_id: str,
    caller: CallerDep,
    directory: UserDirectoryDep,
    service: BroadcastServiceDep,
    payload: Optional[SendBroadcastRequest] = None,
):
    """Send a draft now, or schedule it when `scheduledAt` is given."""
    require_capability(directory, caller, Capability.MANAGE_BROADCASTS)
    try:
        if payload is not None and payload.scheduled_at is not None:
            scheduled_at = service.schedule(broadcast_id, payload.scheduled_at)
            return SendBroadcastResponse(
                status=BroadcastStatus.SCHEDULED, scheduled_at=scheduled_at
            )
        with bind_request_context(
            request_path=request.url.path,
            request_method=request.method,
            trigger="manual",
        ):
            outcome = service.send_now(broadcast_id)
        return SendBroadcastResponse(status=outcome.status, stats=outcome.stats)
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.post("/messages/{broadcast_id}/read", response_model=MarkReadResponse)
@limiter.limit("100/minute")
def mark_message_read(
    request: Request,
    broadcast_id: str,
    caller: CallerDep,
    directory: UserDirectoryDep,
    tracker: ReceiptTrackerDep,
):
    """Record that the caller read a broadcast. Later reads keep the first time."""
    user = require_capability(directory, caller, Capability.VIEW_MESSAGES)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        first_read = tracker.mark_read(broadcast_id, user.id)
    except BroadcastError as e:
        raise to_http_error(e) from e
    return MarkReadResponse(first_read=first_read)


@router.get("/messages/unread-count", response_model=UnreadCountResponse)
@limiter.limit("100/minute")
def get_unread_count(
    request: Request,
    caller: OptionalCallerDep,
    directory: UserDirectoryDep,
    tracker: ReceiptTrackerDep,
):
    """Unread broadcasts for the caller; zero when the caller is unknown or not allowed."""
    if caller is None:
        return UnreadCountResponse(count=0)
    try:
        user = identify(directory, caller)
        if user is None or not caller_can(caller, user, Capability.VIEW_MESSAGES):
            return UnreadCountResponse(count=0)
        return UnreadCountResponse(count=tracker.unread_count(user.id))
    except BroadcastError as e:
        raise to_http_error(e) from e


@router.get("/messages", response_model=List[UserMessage])
@limiter.limit("100/minute")
def list_messages(
    request: Request,
    caller: CallerDep,
    directory: UserDirectoryDep,
    tracker: ReceiptTrackerDep,
):
    """The caller's broadcasts, newest first."""
    user = require_capability(directory, caller, Capability.VIEW_MESSAGES)
    if user is None:
        return []
    try:
        return tracker.list_messages(user.id)
    except BroadcastError as e:
        raise to_http_error(e) from e
