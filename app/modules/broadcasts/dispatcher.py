"""Broadcast dispatcher.

Runs one dispatch pass for a broadcast:

1. Compare-and-set the broadcast into `sending` (or resume it).
2. Resolve recipients and get-or-create one delivery per recipient. Pending
   channels of recipients no longer resolved are skipped.
3. Send every channel still `Pending` through a bounded worker pool, one
   attempt per channel per pass. Each send is timed from when a worker
   starts it; a send no worker reaches in time is left for the next pass.
4. Write each outcome to that channel only, recompute stats from the
   delivery records and settle the broadcast status.

A pass that leaves transient failures behind keeps the broadcast in
`sending`; the scheduler resumes it on its next tick until every channel is
terminal or has used up its attempts.
"""

import contextvars
import math
import socket
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import structlog

from infrastructure.configuration.features.broadcasts import BroadcastSettings
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notification, NotificationChannel
from infrastructure.operations import OperationResult
from modules.broadcasts.errors import (
    BroadcastNotFoundError,
    BroadcastValidationError,
    StoreUnavailableError,
)
from modules.broadcasts.models import (
    DISPATCHABLE_STATUSES,
    SMS_BODY_MAX_LENGTH,
    Broadcast,
    BroadcastStats,
    BroadcastStatus,
    Channel,
    ChannelState,
    Delivery,
    Failed,
    Pending,
    Sent,
    Skipped,
    utc_now,
)
from modules.broadcasts.resolver import (
    SKIP_DAILY_LIMIT,
    SKIP_NO_LONGER_ELIGIBLE,
    RecipientResolver,
    ResolvedRecipient,
)
from modules.broadcasts.store import BroadcastStore, DeliveryStore
from modules.broadcasts.users import UserDirectory

logger = get_module_logger()


@dataclass
class DispatchOutcome:
    """Result of one dispatch pass.

    Attributes:
        broadcast_id: Broadcast processed
        status: Broadcast status after the pass
        stats: Aggregate stats after the pass
        skipped: True when the claim was refused and nothing ran
    """

    broadcast_id: str
    status: BroadcastStatus
    stats: Optional[BroadcastStats] = None
    skipped: bool = False


def next_state(
    current: ChannelState, result: OperationResult, max_attempts: int
) -> ChannelState:
    """Channel state after one send attempt.

    Success is terminal, a permanent error is terminal, and a transient
    error stays pending until the attempt cap is reached.
    """
    attempts = (current.attempts if isinstance(current, Pending) else 0) + 1

    if result.is_success:
        data = result.data or {}
        return Sent(
            sent_at=utc_now(),
            message_id=data.get("message_id"),
            attempts=attempts,
        )
    if result.is_transient and attempts < max_attempts:
        return Pending(attempts=attempts, last_error=result.message)
    return Failed(
        error=result.message or "Unknown error",
        error_code=result.error_code,
        attempts=attempts,
    )


def aggregate_stats(deliveries: Iterable[Delivery]) -> BroadcastStats:
    """Recompute broadcast stats from delivery records.

    `attempted` counts recipients with at least one channel that was not
    skipped.
    """
    stats = BroadcastStats()
    for delivery in deliveries:
        stats.total_recipients += 1
        if any(not isinstance(s, Skipped) for s in delivery.states().values()):
            stats.attempted += 1
        if delivery.is_read:
            stats.read += 1
        for channel, state in delivery.states().items():
            channel_stats = stats.for_channel(channel)
            match state:
                case Skipped():
                    channel_stats.skipped += 1
                    continue
                case Sent():
                    channel_stats.sent += 1
                    stats.sent += 1
                case Failed():
                    channel_stats.failed += 1
                    stats.failed += 1
                case Pending():
                    channel_stats.pending += 1
            channel_stats.attempted += 1
    return stats


def final_status(deliveries: List[Delivery]) -> BroadcastStatus:
    """Settle the broadcast status from its deliveries.

    Anything pending keeps the broadcast `sending`; otherwise it is `failed`
    when any channel failed and `sent` when none did.
    """
    if any(d.is_pending for d in deliveries):
        return BroadcastStatus.SENDING
    if any(d.has_failure for d in deliveries):
        return BroadcastStatus.FAILED
    return BroadcastStatus.SENT


def validate_broadcast(broadcast: Broadcast) -> None:
    """Reject broadcasts that must not enter `sending`."""
    if not broadcast.subject or not broadcast.subject.strip():
        raise BroadcastValidationError(f"Broadcast {broadcast.id} has no subject")
    if broadcast.sms_body and len(broadcast.sms_body) > SMS_BODY_MAX_LENGTH:
        raise BroadcastValidationError(
            f"Broadcast {broadcast.id} SMS text exceeds {SMS_BODY_MAX_LENGTH} characters"
        )


class _TimedSend:
    """One channel send that records when a worker picked it up."""

    def __init__(
        self,
        send: Callable[[str, Notification], OperationResult],
        address: str,
        notification: Notification,
    ):
        self._send = send
        self._address = address
        self._notification = notification
        self.started = threading.Event()
        self.started_at: Optional[float] = None

    def __call__(self) -> OperationResult:
        self.started_at = time.monotonic()
        self.started.set()
        return self._send(self._address, self._notification)


class Dispatcher:
    """Fans a broadcast out to its recipients over every enabled channel.

    Args:
        broadcasts: Broadcast store
        deliveries: Delivery store
        directory: User directory for recipients and the sender name
        channels: Channel adapters keyed by channel
        settings: Worker pool, timeout, attempt cap and lease configuration
        worker_id: Identifier used for the dispatch lease
    """

    def __init__(
        self,
        broadcasts: BroadcastStore,
        deliveries: DeliveryStore,
        directory: UserDirectory,
        channels: Mapping[Channel, NotificationChannel],
        settings: BroadcastSettings,
        worker_id: Optional[str] = None,
    ):
        self._broadcasts = broadcasts
        self._deliveries = deliveries
        self._directory = directory
        self._resolver = RecipientResolver(directory)
        self._channels = dict(channels)
        self._settings = settings
        self._worker_id = worker_id or f"{socket.gethostname()}-{uuid.uuid4().hex[:8]}"

    def dispatch(self, broadcast_id: str, resume: bool = False) -> DispatchOutcome:
        """Run one dispatch pass.

        Args:
            broadcast_id: Broadcast to send
            resume: Allow picking up a broadcast already in `sending`

        Returns:
            DispatchOutcome; `skipped=True` when another run owns the
            broadcast or it is already terminal.

        Raises:
            BroadcastNotFoundError: unknown broadcast id
            BroadcastValidationError: malformed broadcast; a draft is left
                untouched, a scheduled one moves to `failed`
            StoreUnavailableError: store failure; the broadcast stays `sending`
        """
        with structlog.contextvars.bound_contextvars(broadcast_id=broadcast_id):
            broadcast = self._broadcasts.get(broadcast_id)
            if broadcast is None:
                raise BroadcastNotFoundError(broadcast_id)

            if broadcast.status in DISPATCHABLE_STATUSES:
                try:
                    validate_broadcast(broadcast)
                except BroadcastValidationError as e:
                    if broadcast.status == BroadcastStatus.SCHEDULED:
                        self._reject_scheduled(broadcast, e)
                    raise

            claimed = self._broadcasts.claim(
                broadcast_id,
                self._worker_id,
                self._settings.claim_lease_seconds,
                resume=resume,
            )
            if not claimed:
                logger.info(
                    "broadcast_dispatch_skipped",
                    status=broadcast.status.value,
                    resume=resume,
                )
                return DispatchOutcome(
                    broadcast_id=broadcast_id,
                    status=broadcast.status,
                    stats=broadcast.stats,
                    skipped=True,
                )

            logger.info("broadcast_dispatch_started", resume=resume)
            try:
                return self._run(broadcast)
            except Exception:
                self._release(broadcast_id)
                raise

    def _reject_scheduled(
        self, broadcast: Broadcast, error: BroadcastValidationError
    ) -> None:
        """Move an invalid scheduled broadcast to `failed` so it is not due again."""
        claimed = self._broadcasts.claim(
            broadcast.id, self._worker_id, self._settings.claim_lease_seconds
        )
        if not claimed:
            return
        self._broadcasts.finish(broadcast.id, BroadcastStatus.FAILED)
        logger.error("scheduled_broadcast_rejected", reason=str(error))

    def _run(self, broadcast: Broadcast) -> DispatchOutcome:
        available = [
            channel
            for channel, adapter in self._channels.items()
            if adapter.is_configured()
        ]
        recipients = self._resolver.resolve(broadcast, available)
        notification = self.build_notification(broadcast)

        tasks: List[Tuple[Delivery, Channel, str]] = []
        resolved: Set[str] = set()
        for recipient in recipients:
            resolved.add(recipient.user_id)
            delivery = self._ensure_delivery(broadcast, recipient)
            for channel in broadcast.channels.enabled():
                state = delivery.state(channel)
                if not isinstance(state, Pending):
                    continue
                if channel in recipient.addresses:
                    tasks.append((delivery, channel, recipient.addresses[channel]))
                else:
                    # Address disappeared since the delivery was created
                    reason = recipient.skipped.get(channel, "No address")
                    self._deliveries.update_channel(
                        broadcast.id, recipient.user_id, channel, Skipped(reason=reason)
                    )
        self._skip_dropped(broadcast, resolved)

        self._send_all(broadcast, notification, tasks)

        deliveries = self._deliveries.list_for_broadcast(broadcast.id)
        stats = aggregate_stats(deliveries)
        status = final_status(deliveries)

        self._broadcasts.update_stats(broadcast.id, stats)
        if status == BroadcastStatus.SENDING:
            self._broadcasts.release(broadcast.id, self._worker_id)
        else:
            self._broadcasts.finish(broadcast.id, status, sent_at=utc_now())

        logger.info(
            "broadcast_dispatch_completed",
            status=status.value,
            recipients=stats.total_recipients,
            sent=stats.sent,
            failed=stats.failed,
            pending=sum(stats.for_channel(c).pending for c in Channel),
        )
        return DispatchOutcome(broadcast_id=broadcast.id, status=status, stats=stats)

    def _ensure_delivery(
        self, broadcast: Broadcast, recipient: ResolvedRecipient
    ) -> Delivery:
        existing = self._deliveries.get(broadcast.id, recipient.user_id)
        if existing is not None:
            return existing

        if not recipient.unknown and self._over_daily_limit(recipient.user_id):
            logger.warning(
                "broadcast_recipient_daily_limit_reached",
                user_id=recipient.user_id,
                limit=self._settings.daily_limit,
            )
            for channel in recipient.addresses:
                recipient.skipped[channel] = SKIP_DAILY_LIMIT
            recipient.addresses = {}

        delivery, created = self._deliveries.get_or_create(
            Delivery(
                id=Delivery.make_id(broadcast.id, recipient.user_id),
                broadcast_id=broadcast.id,
                user_id=recipient.user_id,
                user_name=recipient.name,
                user_email=recipient.email,
                chat=recipient.initial_state(Channel.CHAT),
                email=recipient.initial_state(Channel.EMAIL),
                sms=recipient.initial_state(Channel.SMS),
            )
        )
        if created:
            logger.debug("delivery_created", user_id=recipient.user_id)
        return delivery

    def _over_daily_limit(self, user_id: str) -> bool:
        start_of_day = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
        received_today = sum(
            1
            for d in self._deliveries.list_for_user(user_id)
            if d.created_at >= start_of_day
        )
        return received_today >= self._settings.daily_limit

    def _skip_dropped(self, broadcast: Broadcast, resolved: Set[str]) -> None:
        """Skip pending channels of recipients the resolver no longer returns."""
        for delivery in self._deliveries.list_for_broadcast(broadcast.id):
            if delivery.user_id in resolved:
                continue
            for channel in broadcast.channels.enabled():
                if not isinstance(delivery.state(channel), Pending):
                    continue
                self._deliveries.update_channel(
                    broadcast.id,
                    delivery.user_id,
                    channel,
                    Skipped(reason=SKIP_NO_LONGER_ELIGIBLE),
                )
                logger.info(
                    "delivery_recipient_no_longer_eligible",
                    user_id=delivery.user_id,
                    channel=channel.value,
                )

    def _send_all(
        self,
        broadcast: Broadcast,
        notification: Notification,
        tasks: List[Tuple[Delivery, Channel, str]],
    ) -> None:
        if not tasks:
            return

        timeout = self._settings.send_timeout_seconds
        workers = self._settings.max_workers
        executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="broadcast-send",
        )
        try:
            sends: List[Tuple[_TimedSend, Future, Delivery, Channel]] = []
            for delivery, channel, address in tasks:
                message = notification.model_copy(update={"reference": delivery.id})
                call = _TimedSend(self._channels[channel].send, address, message)
                # Carry the bound log context into the worker thread
                context = contextvars.copy_context()
                future = executor.submit(context.run, call)
                sends.append((call, future, delivery, channel))

            # Queued sends wait for at most one timeout per wave of workers
            start_deadline = time.monotonic() + timeout * math.ceil(len(tasks) / workers)
            for call, future, delivery, channel in sends:
                result = self._wait(call, future, timeout, start_deadline, delivery, channel)
                if result is not None:
                    self._record(broadcast, delivery, channel, result)
        finally:
            # Timed-out calls keep running in the background
            executor.shutdown(wait=False, cancel_futures=True)

    def _wait(
        self,
        call: _TimedSend,
        future: Future,
        timeout: float,
        start_deadline: float,
        delivery: Delivery,
        channel: Channel,
    ) -> Optional[OperationResult]:
        """Wait for one send, timing it from when a worker started it.

        Returns:
            The send result, or None when the send never started and was
            cancelled, leaving the channel untouched for the next pass.
        """
        if not call.started.wait(max(0.0, start_deadline - time.monotonic())):
            if future.cancel():
                logger.info(
                    "delivery_channel_deferred",
                    user_id=delivery.user_id,
                    channel=channel.value,
                )
                return None
            call.started.wait(timeout)

        started_at = call.started_at or time.monotonic()
        try:
            return future.result(timeout=max(0.0, started_at + timeout - time.monotonic()))
        except FutureTimeoutError:
            logger.warning(
                "delivery_channel_timeout",
                user_id=delivery.user_id,
                channel=channel.value,
                timeout=timeout,
            )
            return OperationResult.transient_error(
                f"{channel.value} send timed out after {timeout}s",
                error_code="TIMEOUT",
            )
        except Exception as e:
            logger.exception(
                "delivery_channel_unexpected_error",
                user_id=delivery.user_id,
                channel=channel.value,
                error=str(e),
            )
            return OperationResult.transient_error(
                f"Unexpected error: {str(e)}",
                error_code="UNEXPECTED_ERROR",
            )

    def _record(
        self,
        broadcast: Broadcast,
        delivery: Delivery,
        channel: Channel,
        result: OperationResult,
    ) -> None:
        state = next_state(
            delivery.state(channel), result, self._settings.max_attempts
        )
        self._deliveries.update_channel(
            broadcast.id, delivery.user_id, channel, state
        )
        match state:
            case Sent():
                logger.info(
                    "delivery_channel_sent",
                    user_id=delivery.user_id,
                    channel=channel.value,
                    message_id=state.message_id,
                )
            case Pending():
                logger.warning(
                    "delivery_channel_retry_pending",
                    user_id=delivery.user_id,
                    channel=channel.value,
                    attempts=state.attempts,
                    error=state.last_error,
                )
            case Failed():
                logger.warning(
                    "delivery_channel_failed",
                    user_id=delivery.user_id,
                    channel=channel.value,
                    attempts=state.attempts,
                    error=state.error,
                    error_code=state.error_code,
                )

    def _release(self, broadcast_id: str) -> None:
        try:
            self._broadcasts.release(broadcast_id, self._worker_id)
        except StoreUnavailableError as e:
            # The lease expires on its own
            logger.warning("broadcast_release_failed", error=str(e))

    def sender_name(self, broadcast: Broadcast) -> str:
        if broadcast.created_by:
            author = self._directory.get(broadcast.created_by)
            if author is None:
                author = self._directory.find_by_external_id(broadcast.created_by)
            if author is not None:
                return author.display_name
        return self._settings.default_sender_name

    def build_notification(self, broadcast: Broadcast) -> Notification:
        base_url = self._settings.message_center_url.rstrip("/")
        return Notification(
            subject=broadcast.subject,
            html_body=broadcast.body,
            sms_body=broadcast.sms_body,
            link_url=broadcast.link_url,
            link_text=broadcast.link_text,
            video_url=broadcast.video_url,
            sender_name=self.sender_name(broadcast),
            message_url=f"{base_url}/messages/{broadcast.id}",
        )


def channel_map(channels: Iterable[NotificationChannel]) -> Dict[Channel, NotificationChannel]:
    """Key adapters by the channel they serve."""
    return {Channel(adapter.channel_name): adapter for adapter in channels}
