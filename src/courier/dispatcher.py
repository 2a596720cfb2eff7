"""Event dispatcher: fan-out of events to registered targets.

For every target subscribed to an event the dispatcher checks the rate
limiter, builds the request (headers, authentication, signature, caller
context, body), sends it through the transport, records stats and
publishes a lifecycle notification. Failed attempts are retried in the
background according to the target's retry policy.

Example:
    ```python
    async with Dispatcher() as dispatcher:
        target_id = await dispatcher.register(
            {"url": "https://example.com/hooks", "event": "order.created"}
        )
        results = await dispatcher.trigger("order.created", {"order_id": 42})
    ```
"""

from __future__ import annotations

import asyncio
import base64
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, assert_never

from courier.config import Settings
from courier.config import settings as default_settings
from courier.delivery_log import DeliveryLog
from courier.exceptions import (
    ConfigurationError,
    RateLimitedError,
    RetryExhaustedError,
    TransportError,
    ValidationError,
)
from courier.logging import bind_context, configure_logging, get_logger, unbind_context
from courier.models import (
    ApiKeyAuth,
    AuthDescriptor,
    BasicAuth,
    BearerAuth,
    DeliveryContext,
    DeliveryLogEntry,
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStats,
    Notification,
    NotificationKind,
    OAuth2Auth,
    Target,
    TargetConfig,
    TargetFilter,
    TargetStatus,
    generate_id,
)
from courier.notifications import Handler, NotificationBus
from courier.ratelimit import RateLimiter
from courier.registry import TargetRegistry, coerce_config, validate_target
from courier.retry import compute_retry_delay_ms
from courier.signing import SIGNATURE_HEADER, Signer, canonical_json
from courier.stats import StatsTracker
from courier.transport import HttpxTransport, Transport, TransportRequest

logger = get_logger(__name__)

_LOG_KEYS = ("target_id", "event_name", "correlation_id", "attempt")


def auth_headers(auth: AuthDescriptor) -> dict[str, str]:
    """Headers that carry a target's credentials."""
    match auth:
        case BasicAuth(username=username, password=password):
            token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
            return {"Authorization": f"Basic {token}"}
        case BearerAuth(token=token):
            return {"Authorization": f"Bearer {token}"}
        case ApiKeyAuth(header_name=header_name, key=key):
            return {header_name: key}
        case OAuth2Auth(access_token=access_token):
            return {"Authorization": f"Bearer {access_token}"}
        case _:
            assert_never(auth)


def query_params(payload: Any) -> dict[str, str]:
    """Flatten a payload into query parameters for GET deliveries.

    Scalar values are sent as-is, nested values as compact JSON. A
    non-mapping payload is sent as a single ``payload`` parameter.
    """
    if not isinstance(payload, Mapping):
        return {"payload": canonical_json(payload)}

    params: dict[str, str] = {}
    for key, value in payload.items():
        if isinstance(value, str):
            params[str(key)] = value
        elif isinstance(value, bool) or value is None:
            params[str(key)] = canonical_json(value)
        elif isinstance(value, int | float):
            params[str(key)] = str(value)
        else:
            params[str(key)] = canonical_json(value)
    return params


class Dispatcher:
    """Delivers events to registered targets.

    All collaborators are injectable; defaults are built from settings.

    Args:
        registry: Target registry. Its signer and notifier are shared.
        rate_limiter: Per-target admission control.
        stats: Per-target delivery counters.
        transport: Network transport.
        delivery_log: In-memory delivery log attached to the notifier.
        settings: Dispatcher settings.
        sleep: Coroutine used to wait out retry delays, in seconds.
    """

    def __init__(
        self,
        registry: TargetRegistry | None = None,
        *,
        rate_limiter: RateLimiter | None = None,
        stats: StatsTracker | None = None,
        transport: Transport | None = None,
        delivery_log: DeliveryLog | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings if settings is not None else default_settings
        configure_logging(level=self._settings.log_level, format=self._settings.log_format)

        if registry is None:
            registry = TargetRegistry(
                signer=Signer(),
                notifier=NotificationBus(self._settings.notification_queue_size),
            )
        self._registry = registry
        self._signer = registry.signer
        self._notifier = registry.notifier
        self._rate_limiter = (
            rate_limiter
            if rate_limiter is not None
            else RateLimiter(default_window_ms=self._settings.default_rate_limit_window_ms)
        )
        self._stats = stats if stats is not None else StatsTracker()
        self._transport: Transport = transport if transport is not None else HttpxTransport()
        if not isinstance(self._transport, Transport):
            raise ConfigurationError(
                f"transport does not implement Transport: {type(self._transport).__name__}"
            )
        self._delivery_log = (
            delivery_log
            if delivery_log is not None
            else DeliveryLog(self._settings.delivery_log_size)
        )
        self._delivery_log.attach(self._notifier)
        self._sleep = sleep

        self._timeout = self._settings.request_timeout_seconds
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrent_deliveries)
        self._retries: dict[str, set[asyncio.Task[None]]] = {}
        self._jobs: set[asyncio.Task[None]] = set()

        self._registry.add_discard_hook(self._forget_target)

        logger.info(
            "dispatcher_started",
            env=self._settings.env,
            log_level=self._settings.log_level,
            timeout_seconds=self._timeout,
            max_concurrent=self._settings.max_concurrent_deliveries,
        )

    async def __aenter__(self) -> Dispatcher:
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Target management
    # ------------------------------------------------------------------

    @property
    def registry(self) -> TargetRegistry:
        return self._registry

    @property
    def notifier(self) -> NotificationBus:
        return self._notifier

    async def register(self, config: TargetConfig | Mapping[str, Any]) -> str:
        """Register a target, probing its URL first if requested.

        Raises:
            ValidationError: If the configuration is invalid or the probe fails.
        """
        config = coerce_config(config)
        if config.test_on_register:
            validate_target(config)
            await self._probe(config.url)
        return self._registry.register(config)

    def unregister(self, target_id: str) -> None:
        self._registry.unregister(target_id)

    def update(self, target_id: str, fields: Mapping[str, Any]) -> Target:
        return self._registry.update(target_id, fields)

    def get(self, target_id: str) -> Target | None:
        return self._registry.get(target_id)

    def list(
        self,
        filter: TargetFilter | None = None,
        *,
        event: str | None = None,
        status: TargetStatus | None = None,
    ) -> list[Target]:
        return self._registry.list(filter, event=event, status=status)

    def get_stats(self, target_id: str) -> DeliveryStats:
        """Delivery stats for a known target.

        Raises:
            NotFoundError: If the target was never registered.
        """
        self._registry.require(target_id)
        return self._stats.get(target_id)

    def get_logs(self, target_id: str, limit: int = 100) -> list[DeliveryLogEntry]:
        """Recent delivery attempts for a target, oldest first."""
        return self._delivery_log.entries(target_id, limit)

    def subscribe(
        self,
        handler: Handler,
        kinds: Iterable[NotificationKind] | None = None,
    ) -> Callable[[], None]:
        """Observe lifecycle notifications. Returns the unsubscribe callable."""
        return self._notifier.subscribe(handler, kinds)

    async def _probe(self, url: str) -> None:
        request = TransportRequest(
            method="HEAD",
            url=url,
            headers={"User-Agent": self._settings.user_agent},
        )
        timeout = self._settings.probe_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._transport.send(request, timeout=timeout), timeout=timeout
            )
        except TimeoutError:
            raise ValidationError("url", f"URL probe timed out after {timeout:g}s") from None
        except TransportError as e:
            raise ValidationError("url", f"URL probe failed: {e.message}") from e

        if response.status_code >= 400:
            raise ValidationError("url", f"URL probe failed: HTTP {response.status_code}")

    def _forget_target(self, target_id: str) -> None:
        for task in self._retries.pop(target_id, set()):
            task.cancel()
        self._rate_limiter.discard(target_id)
        self._stats.discard(target_id)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def trigger(
        self,
        event_name: str,
        payload: Any,
        context: DeliveryContext | Mapping[str, Any] | None = None,
    ) -> list[DeliveryResult]:
        """Deliver an event to every subscribed target.

        Targets are attempted concurrently and independently. The call
        returns once every target's first attempt has finished; retries
        run in the background.

        Args:
            event_name: Name of the event.
            payload: JSON-serializable payload.
            context: Optional caller identity propagated as headers.

        Returns:
            One result per resolved target, in resolution order.
        """
        ctx = self._coerce_context(context)
        targets = self._registry.resolve_for_event(event_name)
        if not targets:
            logger.debug("no_targets", event_name=event_name)
            return []

        outcomes = await asyncio.gather(
            *(self._attempt(target, event_name, payload, ctx, attempt=1) for target in targets),
            return_exceptions=True,
        )

        results: list[DeliveryResult] = []
        for target, outcome in zip(targets, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error("delivery_crashed", target_id=target.id, error=str(outcome))
                outcome = DeliveryResult(
                    target_id=target.id,
                    event=event_name,
                    outcome=DeliveryOutcome.FAILED,
                    error=f"Unexpected error: {outcome}",
                )
            results.append(outcome)
        return results

    async def trigger_async(
        self,
        event_name: str,
        payload: Any,
        context: DeliveryContext | Mapping[str, Any] | None = None,
    ) -> str:
        """Queue an event for delivery without waiting for it.

        Errors are reported through an async-error notification.

        Returns:
            Correlation token for the job.
        """
        job_id = generate_id("job")
        task = asyncio.get_running_loop().create_task(
            self._run_job(job_id, event_name, payload, context)
        )
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)
        logger.debug("job_queued", job_id=job_id, event_name=event_name)
        return job_id

    async def _run_job(
        self,
        job_id: str,
        event_name: str,
        payload: Any,
        context: DeliveryContext | Mapping[str, Any] | None,
    ) -> None:
        try:
            await self.trigger(event_name, payload, context)
        except Exception as e:
            logger.exception("job_failed", job_id=job_id, event_name=event_name)
            self._publish(
                NotificationKind.ASYNC_ERROR,
                None,
                event_name,
                job_id=job_id,
                error=str(e),
            )

    @staticmethod
    def _coerce_context(
        context: DeliveryContext | Mapping[str, Any] | None,
    ) -> DeliveryContext | None:
        if context is None or isinstance(context, DeliveryContext):
            return context
        return DeliveryContext.model_validate(dict(context))

    async def _attempt(
        self,
        target: Target,
        event_name: str,
        payload: Any,
        context: DeliveryContext | None,
        attempt: int,
    ) -> DeliveryResult:
        bind_context(
            target_id=target.id,
            event_name=event_name,
            correlation_id=context.correlation_id if context else None,
            attempt=attempt,
        )
        try:
            if not self._rate_limiter.admit(target.id, target.rate_limit):
                return self._rate_limited(target, event_name, attempt)
            return await self._send(target, event_name, payload, context, attempt)
        finally:
            unbind_context(*_LOG_KEYS)

    async def _send(
        self,
        target: Target,
        event_name: str,
        payload: Any,
        context: DeliveryContext | None,
        attempt: int,
    ) -> DeliveryResult:
        delivery_id = generate_id("dlv")
        started = time.perf_counter()
        try:
            request = self.build_request(target, event_name, payload, context, delivery_id)
            async with self._semaphore:
                started = time.perf_counter()
                response = await asyncio.wait_for(
                    self._transport.send(request, timeout=self._timeout),
                    timeout=self._timeout,
                )
            if not response.is_success:
                raise TransportError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )
        except TimeoutError:
            error = TransportError(f"Request timeout after {self._timeout:g}s")
        except TransportError as e:
            error = e
        except Exception as e:
            logger.exception("delivery_error")
            error = TransportError(f"Unexpected error: {e}")
        else:
            return self._delivered(
                target,
                event_name,
                delivery_id,
                attempt,
                status_code=response.status_code,
                body=response.text,
                duration_ms=self._elapsed_ms(started),
            )

        result = self._failed(
            target,
            event_name,
            delivery_id,
            attempt,
            error=error,
            duration_ms=self._elapsed_ms(started),
        )
        if self._registry.is_active(target.id):
            self._schedule_retry(target, event_name, payload, context, attempt)
        return result

    def build_request(
        self,
        target: Target,
        event_name: str,
        payload: Any,
        context: DeliveryContext | None = None,
        delivery_id: str | None = None,
    ) -> TransportRequest:
        """Build the outbound request for one target.

        Header precedence, lowest first: base headers, target static
        headers, authentication, signature, caller context.
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._settings.user_agent,
            "X-Webhook-Event": event_name,
            "X-Webhook-Delivery-Id": delivery_id or generate_id("dlv"),
        }
        headers.update(target.headers)

        if target.auth is not None:
            headers.update(auth_headers(target.auth))

        is_get = target.method == "GET"
        body = payload
        if not is_get and target.transform is not None:
            body = target.transform(payload)

        if target.signature_enabled:
            version = target.signature_version or self._settings.default_signature_version
            headers[SIGNATURE_HEADER] = self._signer.sign(target.id, body, version)

        if context is not None:
            headers.update(context.headers())

        if is_get:
            return TransportRequest(
                method="GET",
                url=target.url,
                headers=headers,
                params=query_params(payload),
            )
        return TransportRequest(
            method=target.method,
            url=target.url,
            headers=headers,
            content=canonical_json(body).encode("utf-8"),
        )

    def _rate_limited(self, target: Target, event_name: str, attempt: int) -> DeliveryResult:
        error = RateLimitedError(
            target.id, self._rate_limiter.retry_after_ms(target.id, target.rate_limit)
        )
        logger.warning("delivery_rate_limited", retry_after_ms=error.retry_after_ms)
        self._publish(
            NotificationKind.RATE_LIMITED,
            target.id,
            event_name,
            attempt=attempt,
            status_code=429,
            error=error.message,
            retry_after_ms=error.retry_after_ms,
        )
        return DeliveryResult(
            target_id=target.id,
            event=event_name,
            outcome=DeliveryOutcome.RATE_LIMITED,
            attempt=attempt,
            status_code=429,
            error=error.message,
        )

    def _delivered(
        self,
        target: Target,
        event_name: str,
        delivery_id: str,
        attempt: int,
        status_code: int,
        body: str,
        duration_ms: float,
    ) -> DeliveryResult:
        if self._registry.is_active(target.id):
            self._stats.record(target.id, True, duration_ms)
        logger.info("delivery_succeeded", status_code=status_code, duration_ms=duration_ms)
        self._publish(
            NotificationKind.DELIVERED,
            target.id,
            event_name,
            delivery_id=delivery_id,
            attempt=attempt,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            id=delivery_id,
            target_id=target.id,
            event=event_name,
            outcome=DeliveryOutcome.DELIVERED,
            attempt=attempt,
            status_code=status_code,
            response_body=self._truncate(body),
            duration_ms=duration_ms,
        )

    def _failed(
        self,
        target: Target,
        event_name: str,
        delivery_id: str,
        attempt: int,
        error: TransportError,
        duration_ms: float,
    ) -> DeliveryResult:
        if self._registry.is_active(target.id):
            self._stats.record(target.id, False, duration_ms)
        logger.warning(
            "delivery_failed",
            error=error.message,
            status_code=error.status_code,
            duration_ms=duration_ms,
        )
        self._publish(
            NotificationKind.FAILED,
            target.id,
            event_name,
            delivery_id=delivery_id,
            attempt=attempt,
            status_code=error.status_code,
            error=error.message,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            id=delivery_id,
            target_id=target.id,
            event=event_name,
            outcome=DeliveryOutcome.FAILED,
            attempt=attempt,
            status_code=error.status_code,
            response_body=self._truncate(error.response_body),
            error=error.message,
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------
    # Retries
    # ------------------------------------------------------------------

    def _schedule_retry(
        self,
        target: Target,
        event_name: str,
        payload: Any,
        context: DeliveryContext | None,
        attempt: int,
    ) -> None:
        policy = target.retry
        if policy is None:
            return

        if attempt >= policy.max_attempts:
            exhausted = RetryExhaustedError(target.id, attempt)
            logger.warning("delivery_retries_exhausted", attempts=attempt)
            self._publish(
                NotificationKind.RETRY_EXHAUSTED,
                target.id,
                event_name,
                attempt=attempt,
                outcome=DeliveryOutcome.EXHAUSTED.value,
                error=exhausted.message,
            )
            return

        delay_ms = compute_retry_delay_ms(
            policy, attempt, default_delay_ms=self._settings.default_retry_delay_ms
        )
        task = asyncio.get_running_loop().create_task(
            self._retry_later(target.id, event_name, payload, context, attempt + 1, delay_ms)
        )
        pending = self._retries.setdefault(target.id, set())
        pending.add(task)
        task.add_done_callback(pending.discard)

        logger.info("delivery_retry_scheduled", next_attempt=attempt + 1, delay_ms=delay_ms)
        self._publish(
            NotificationKind.RETRY_SCHEDULED,
            target.id,
            event_name,
            attempt=attempt + 1,
            delay_ms=delay_ms,
        )

    async def _retry_later(
        self,
        target_id: str,
        event_name: str,
        payload: Any,
        context: DeliveryContext | None,
        attempt: int,
        delay_ms: float,
    ) -> None:
        await self._sleep(delay_ms / 1000.0)

        target = self._registry.get(target_id)
        if target is None or not target.is_active:
            logger.info("retry_skipped_inactive_target", target_id=target_id, attempt=attempt)
            return

        try:
            await self._attempt(target, event_name, payload, context, attempt)
        except Exception as e:
            logger.exception("retry_failed", target_id=target_id, attempt=attempt)
            self._publish(
                NotificationKind.ASYNC_ERROR,
                target_id,
                event_name,
                attempt=attempt,
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _pending_tasks(self) -> list[asyncio.Task[None]]:
        tasks = list(self._jobs)
        for pending in self._retries.values():
            tasks.extend(pending)
        return [task for task in tasks if not task.done()]

    async def wait_idle(self) -> None:
        """Wait for queued jobs, scheduled retries and notifications to finish."""
        while True:
            tasks = self._pending_tasks()
            if not tasks:
                break
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._notifier.drain()

    async def aclose(self) -> None:
        """Cancel pending retries, flush notifications and close the transport."""
        tasks = self._pending_tasks()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._retries.clear()
        await self._notifier.close()
        await self._transport.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _publish(
        self,
        kind: NotificationKind,
        target_id: str | None,
        event_name: str | None,
        **data: Any,
    ) -> None:
        self._notifier.publish(
            Notification(kind=kind, target_id=target_id, event=event_name, data=data)
        )

    def _truncate(self, body: str | None) -> str | None:
        if body is None:
            return None
        return body[: self._settings.response_body_limit]

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000.0
