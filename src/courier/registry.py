"""Target registry.

The registry is the only writer of Target records. Targets are immutable
pydantic models; an update builds and validates a replacement before
swapping it in, so a rejected update leaves the stored target untouched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, assert_never

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from courier.exceptions import NotFoundError, ValidationError
from courier.models import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    Notification,
    NotificationKind,
    OAuth2Auth,
    Target,
    TargetConfig,
    TargetFilter,
    TargetStatus,
    generate_id,
    utc_now,
)
from courier.notifications import NotificationBus
from courier.signing import Signer

logger = logging.getLogger(__name__)

_URL_ADAPTER: TypeAdapter[AnyHttpUrl] = TypeAdapter(AnyHttpUrl)

# Fields owned by the registry; callers cannot set them through update()
_MANAGED_FIELDS = frozenset({"id", "status", "created_at", "updated_at"})


def _from_pydantic_error(error: PydanticValidationError) -> ValidationError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "target"
    return ValidationError(field, first.get("msg", "invalid value"))


def coerce_config(config: TargetConfig | Mapping[str, Any]) -> TargetConfig:
    """Accept a TargetConfig or a plain mapping describing one.

    Raises:
        ValidationError: If the mapping does not describe a valid TargetConfig.
    """
    if isinstance(config, TargetConfig):
        return config
    try:
        return TargetConfig.model_validate(dict(config))
    except PydanticValidationError as e:
        raise _from_pydantic_error(e) from e


def _validate_auth(auth: BasicAuth | BearerAuth | ApiKeyAuth | OAuth2Auth) -> None:
    match auth:
        case BasicAuth(username=username, password=password):
            if not username or not password:
                raise ValidationError(
                    "auth", "basic authentication requires username and password"
                )
        case BearerAuth(token=token):
            if not token:
                raise ValidationError("auth", "bearer authentication requires token")
        case ApiKeyAuth(header_name=header_name, key=key):
            if not key:
                raise ValidationError("auth", "API key authentication requires key")
            if not header_name:
                raise ValidationError("auth", "API key authentication requires header_name")
        case OAuth2Auth(access_token=access_token):
            if not access_token:
                raise ValidationError("auth", "OAuth2 authentication requires access_token")
        case _:
            assert_never(auth)


def validate_target(config: TargetConfig) -> None:
    """Check the semantic invariants of a target configuration.

    Raises:
        ValidationError: On a missing or malformed URL, an empty event
            filter, incomplete credentials or an empty signature version.
    """
    if not config.url:
        raise ValidationError("url", "URL is required")
    try:
        _URL_ADAPTER.validate_python(config.url)
    except PydanticValidationError:
        raise ValidationError("url", f"invalid URL: {config.url!r}") from None

    if not config.event or not config.event.strip():
        raise ValidationError("event", "event filter is required")

    if config.auth is not None:
        _validate_auth(config.auth)

    if config.signature_version is not None and not config.signature_version.strip():
        raise ValidationError("signature_version", "must not be empty")


class TargetRegistry:
    """In-memory store of registered delivery targets.

    Args:
        signer: Signer that holds secrets for signing-enabled targets.
        notifier: Bus that receives registered/unregistered notifications.
    """

    def __init__(
        self,
        signer: Signer | None = None,
        notifier: NotificationBus | None = None,
    ) -> None:
        self.signer = signer or Signer()
        self.notifier = notifier or NotificationBus()
        self._targets: dict[str, Target] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._discard_hooks: list[Callable[[str], None]] = []

    def add_discard_hook(self, hook: Callable[[str], None]) -> None:
        """Call ``hook(target_id)`` whenever a target is unregistered."""
        self._discard_hooks.append(hook)

    def is_active(self, target_id: str) -> bool:
        target = self._targets.get(target_id)
        return target is not None and target.is_active

    def register(self, config: TargetConfig | Mapping[str, Any]) -> str:
        """Validate and store a new target.

        Args:
            config: Target description.

        Returns:
            The new target's id.

        Raises:
            ValidationError: If the configuration is invalid. Nothing is stored.
        """
        config = coerce_config(config)
        validate_target(config)

        target_id = generate_id("whk")
        now = utc_now()
        fields = {name: getattr(config, name) for name in TargetConfig.model_fields}
        fields["signing_secret"] = None
        target = Target(
            **fields,
            id=target_id,
            status=TargetStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

        if target.signature_enabled:
            self.signer.provision(target_id, config.signing_secret)

        lock = self._locks.setdefault(target_id, threading.Lock())
        with lock:
            self._targets[target_id] = target

        logger.info("Registered target %s for event %s -> %s", target_id, target.event, target.url)
        self.notifier.publish(
            Notification(
                kind=NotificationKind.REGISTERED,
                target_id=target_id,
                event=target.event,
                data={"url": target.url, "name": target.name},
            )
        )
        return target_id

    def unregister(self, target_id: str) -> None:
        """Disable a target. Unknown or already-disabled ids are a no-op."""
        lock = self._locks.get(target_id)
        if lock is None:
            return
        with lock:
            target = self._targets.get(target_id)
            if target is None or target.status is TargetStatus.DISABLED:
                return
            disabled = target.model_copy(
                update={"status": TargetStatus.DISABLED, "updated_at": utc_now()}
            )
            self._targets[target_id] = disabled

        if self.signer.has_secret(target_id):
            self.signer.discard(target_id)

        for hook in self._discard_hooks:
            hook(target_id)

        logger.info("Unregistered target %s", target_id)
        self.notifier.publish(
            Notification(
                kind=NotificationKind.UNREGISTERED,
                target_id=target_id,
                event=disabled.event,
                data={"url": disabled.url},
            )
        )

    def update(self, target_id: str, fields: Mapping[str, Any]) -> Target:
        """Merge fields into a target and re-validate the result.

        A supplied signing_secret replaces the target's current secret.

        Args:
            target_id: Target to update.
            fields: Partial TargetConfig fields.

        Returns:
            The updated target.

        Raises:
            NotFoundError: If the id is unknown.
            ValidationError: If a field is unknown, registry-managed, or the
                merged target is invalid. The stored target is unchanged.
        """
        for name in fields:
            if name in _MANAGED_FIELDS:
                raise ValidationError(name, "field is managed by the registry")
            if name not in TargetConfig.model_fields:
                raise ValidationError(name, "unknown field")

        lock = self._locks.get(target_id)
        if lock is None:
            raise NotFoundError("target", target_id)
        with lock:
            current = self._targets.get(target_id)
            if current is None:
                raise NotFoundError("target", target_id)
            if current.status is TargetStatus.DISABLED:
                raise ValidationError("status", f"target {target_id} is disabled")

            merged = {name: getattr(current, name) for name in TargetConfig.model_fields}
            merged.update(fields)
            candidate = coerce_config(merged)
            validate_target(candidate)

            values = {name: getattr(candidate, name) for name in TargetConfig.model_fields}
            values["signing_secret"] = None
            updated = Target(
                **values,
                id=current.id,
                status=current.status,
                created_at=current.created_at,
                updated_at=utc_now(),
            )

            if candidate.signing_secret is not None and not updated.signature_enabled:
                raise ValidationError("signing_secret", "requires signature_enabled")
            if updated.signature_enabled and (
                candidate.signing_secret is not None or not self.signer.has_secret(target_id)
            ):
                self.signer.provision(target_id, candidate.signing_secret)
            elif not updated.signature_enabled and self.signer.has_secret(target_id):
                self.signer.discard(target_id)

            self._targets[target_id] = updated

        logger.info("Updated target %s (%s)", target_id, ", ".join(sorted(fields)))
        return self._copy(updated)

    def resolve_for_event(self, event_name: str) -> list[Target]:
        """Active targets subscribed to ``event_name`` or to every event."""
        return [self._copy(t) for t in list(self._targets.values()) if t.matches(event_name)]

    def get(self, target_id: str) -> Target | None:
        target = self._targets.get(target_id)
        return self._copy(target) if target is not None else None

    def require(self, target_id: str) -> Target:
        """Like get(), but raises NotFoundError for unknown ids."""
        target = self.get(target_id)
        if target is None:
            raise NotFoundError("target", target_id)
        return target

    def list(
        self,
        filter: TargetFilter | None = None,
        *,
        event: str | None = None,
        status: TargetStatus | None = None,
    ) -> list[Target]:
        """List targets, optionally filtered by event name and/or status."""
        if filter is None:
            filter = TargetFilter(event=event, status=status)
        return [self._copy(t) for t in list(self._targets.values()) if filter.accepts(t)]

    def __len__(self) -> int:
        return len(self._targets)

    @staticmethod
    def _copy(target: Target) -> Target:
        # Nested models are frozen; only the headers dict can be mutated
        return target.model_copy(update={"headers": dict(target.headers)})
