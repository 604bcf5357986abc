# backend/app/services/push_dispatch_service.py
"""
Push dispatch service: fan a notification out to every device of a user.

Each subscription is delivered independently on a per-call bounded thread
pool. One endpoint timing out or erroring never affects the others; the call
returns once every attempt has settled.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import json
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..core.exceptions import VapidSigningError
from ..core.vapid import ServerKeyPair, VapidAssertion, audience_for, sign_vapid_assertion
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..schemas.push import NotifyRequest
from .base import BaseService
from .push_subscription_store import SubscriptionRecord, SubscriptionStore

DEFAULT_ICON = "/icon-192x192.png"
DEFAULT_TAG = "notification"
DEFAULT_VIBRATE = (500, 200, 500, 200, 500)
DEFAULT_TTL_SECONDS = 86400
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_CONCURRENCY = 10


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    EXPIRED = "expired"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Settled result of one delivery attempt."""

    subscription_id: str
    endpoint: str
    status: DeliveryStatus
    status_code: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate counts for one dispatch call."""

    successful: int
    failed: int
    total: int
    outcomes: Tuple[DeliveryOutcome, ...] = ()

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[DeliveryOutcome]) -> "DispatchResult":
        successful = sum(1 for outcome in outcomes if outcome.status is DeliveryStatus.DELIVERED)
        return cls(
            successful=successful,
            failed=len(outcomes) - successful,
            total=len(outcomes),
            outcomes=tuple(outcomes),
        )

    @classmethod
    def empty(cls) -> "DispatchResult":
        return cls(successful=0, failed=0, total=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PushDispatchService(BaseService):
    """
    Deliver web push notifications to all of a user's subscriptions.

    ``timeout`` is applied by httpx to each phase of a request (connect, read,
    write, pool acquisition) rather than to the attempt as a whole, so an
    endpoint that keeps trickling bytes can hold a worker past ``timeout``.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        keys: ServerKeyPair,
        *,
        subject: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__()
        self.store = store
        self.keys = keys
        self.subject = subject
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)
        self._transport = transport
        self._clock = clock

    @BaseService.measure_operation("dispatch")
    def dispatch(self, user_id: str, request: NotifyRequest) -> DispatchResult:
        """
        Send ``request`` to every subscription registered for ``user_id``.

        Returns:
            DispatchResult with successful/failed/total counts. A user with no
            subscriptions yields all zeros.

        Raises:
            SubscriptionStoreError: subscriptions could not be read
            VapidSigningError: the server key could not sign an assertion
        """
        subscriptions = list(self.store.list_for_user(user_id))
        if not subscriptions:
            self.logger.info("No push subscriptions for user %s", user_id)
            return DispatchResult.empty()

        payload = self._build_payload(request)
        targets = self._sign_targets(subscriptions)

        outcomes: List[DeliveryOutcome] = []
        pending: List[Tuple[SubscriptionRecord, Future[DeliveryOutcome]]] = []
        workers = min(len(subscriptions), self.max_concurrency)

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="push-dispatch"
            ) as executor:
                for subscription, assertion in targets:
                    if assertion is None:
                        outcomes.append(
                            self._failed(subscription, reason="invalid endpoint")
                        )
                        continue
                    future = executor.submit(
                        self._deliver, client, subscription, assertion, payload
                    )
                    pending.append((subscription, future))

                outcomes.extend(self._settle(subscription, future) for subscription, future in pending)

        for outcome in outcomes:
            prometheus_metrics.record_push_delivery(outcome.status.value)

        result = DispatchResult.from_outcomes(outcomes)
        self.logger.info(
            "Push dispatch for user %s: successful=%d failed=%d total=%d",
            user_id,
            result.successful,
            result.failed,
            result.total,
        )
        return result

    def _sign_targets(
        self, subscriptions: Sequence[SubscriptionRecord]
    ) -> List[Tuple[SubscriptionRecord, Optional[VapidAssertion]]]:
        """Pair each subscription with an assertion for its origin, signing each origin once."""
        now = self._clock()
        by_origin: Dict[str, VapidAssertion] = {}
        targets: List[Tuple[SubscriptionRecord, Optional[VapidAssertion]]] = []

        for subscription in subscriptions:
            try:
                origin = audience_for(subscription.endpoint)
            except VapidSigningError:
                # Bad row, not bad keys: only this subscription fails.
                targets.append((subscription, None))
                continue
            if origin not in by_origin:
                by_origin[origin] = sign_vapid_assertion(
                    subscription.endpoint, self.keys, self.subject, now
                )
            targets.append((subscription, by_origin[origin]))

        return targets

    def _deliver(
        self,
        client: httpx.Client,
        subscription: SubscriptionRecord,
        assertion: VapidAssertion,
        payload: bytes,
    ) -> DeliveryOutcome:
        headers = {
            "TTL": str(self.ttl_seconds),
            "Content-Type": "application/json",
            "Authorization": assertion.authorization_header(self.keys.public_key_b64),
        }
        try:
            response = client.post(subscription.endpoint, content=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.logger.warning(
                "Push send failed endpoint=%s reason=%s", subscription.endpoint, exc
            )
            return self._failed(subscription, reason=f"{type(exc).__name__}: {exc}")

        if response.is_success:
            return DeliveryOutcome(
                subscription_id=subscription.id,
                endpoint=subscription.endpoint,
                status=DeliveryStatus.DELIVERED,
                status_code=response.status_code,
            )

        if response.status_code == httpx.codes.GONE:
            self.logger.info(
                "Push subscription expired; deleting id=%s endpoint=%s user_id=%s",
                subscription.id,
                subscription.endpoint,
                subscription.user_id,
            )
            self._prune(subscription)
            return DeliveryOutcome(
                subscription_id=subscription.id,
                endpoint=subscription.endpoint,
                status=DeliveryStatus.EXPIRED,
                status_code=response.status_code,
                reason="subscription gone",
            )

        self.logger.warning(
            "Push send failed endpoint=%s status=%s body=%s",
            subscription.endpoint,
            response.status_code,
            response.text[:200],
        )
        return self._failed(
            subscription,
            reason=f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    def _prune(self, subscription: SubscriptionRecord) -> None:
        """Best-effort removal of an expired subscription."""
        try:
            self.store.delete(subscription.id)
        except Exception as exc:
            self.logger.error(
                "Failed to delete expired push subscription id=%s: %s", subscription.id, exc
            )

    def _settle(
        self, subscription: SubscriptionRecord, future: Future[DeliveryOutcome]
    ) -> DeliveryOutcome:
        try:
            return future.result()
        except Exception as exc:
            self.logger.exception(
                "Unexpected error delivering push endpoint=%s", subscription.endpoint
            )
            return self._failed(subscription, reason=f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _failed(
        subscription: SubscriptionRecord,
        *,
        reason: str,
        status_code: Optional[int] = None,
    ) -> DeliveryOutcome:
        return DeliveryOutcome(
            subscription_id=subscription.id,
            endpoint=subscription.endpoint,
            status=DeliveryStatus.FAILED,
            status_code=status_code,
            reason=reason,
        )

    @staticmethod
    def _build_payload(request: NotifyRequest) -> bytes:
        """Build the JSON payload shared by every subscription."""
        payload = {
            "title": request.title,
            "body": request.body,
            "icon": request.icon or DEFAULT_ICON,
            "tag": request.tag or DEFAULT_TAG,
            "requireInteraction": (
                True if request.require_interaction is None else request.require_interaction
            ),
            "vibrate": list(request.vibrate) if request.vibrate is not None else list(DEFAULT_VIBRATE),
            "data": request.data or {},
        }
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")
