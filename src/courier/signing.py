"""HMAC-SHA256 request signing.

Each signing-enabled target gets its own secret. Outgoing payloads are
signed over "{unix_seconds}.{canonical_json}" and the result is sent as

    X-Webhook-Signature: v1=<hex_digest>, t=<unix_seconds>

Receivers rebuild the signed string from the timestamp in the header and
the raw request body, then compare digests with verify_signature().
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Any

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from courier.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
DEFAULT_SIGNATURE_VERSION = "v1"
SECRET_BYTES = 32


def canonical_json(payload: Any) -> str:
    """Serialize a payload exactly as it is signed and sent.

    Compact separators, keys in insertion order, non-ASCII kept verbatim.
    Pydantic models, datetimes and other pydantic-serializable values are
    converted to their JSON form.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    return json.dumps(
        payload,
        separators=(",", ":"),
        ensure_ascii=False,
        default=to_jsonable_python,
    )


def compute_signature(secret: str, timestamp: int, body: str) -> str:
    """Compute the hex HMAC-SHA256 of "{timestamp}.{body}".

    Args:
        secret: Shared secret for HMAC.
        timestamp: Unix seconds included in the signed string.
        body: Canonical JSON body.

    Returns:
        Hex digest.
    """
    message = f"{timestamp}.{body}"
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=message.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def format_signature_header(version: str, digest: str, timestamp: int) -> str:
    return f"{version}={digest}, t={timestamp}"


def parse_signature_header(header: str) -> tuple[str, str, int]:
    """Split a signature header into (version, digest, timestamp).

    Raises:
        ValueError: If the header is not in "{version}={digest}, t={seconds}" form.
    """
    parts = [part.strip() for part in header.split(",")]
    if len(parts) != 2:
        raise ValueError(f"Malformed signature header: {header!r}")

    version, sep, digest = parts[0].partition("=")
    label, tsep, raw_ts = parts[1].partition("=")
    if not sep or not tsep or label != "t" or not version or not digest:
        raise ValueError(f"Malformed signature header: {header!r}")

    try:
        timestamp = int(raw_ts)
    except ValueError:
        raise ValueError(f"Malformed signature timestamp: {raw_ts!r}") from None

    return version, digest, timestamp


def verify_signature(
    body: str,
    secret: str,
    header: str,
    tolerance_seconds: int | None = 300,
    now: float | None = None,
) -> bool:
    """Verify a signature header against a received body.

    Args:
        body: Raw request body as received.
        secret: Shared secret for HMAC.
        header: Value of the X-Webhook-Signature header.
        tolerance_seconds: Maximum accepted age of the signature. None disables
            the replay window check.
        now: Current unix time, for testing.

    Returns:
        True if the digest matches and the timestamp is inside the window.
    """
    try:
        _, digest, timestamp = parse_signature_header(header)
    except ValueError:
        return False

    if tolerance_seconds is not None:
        current = time.time() if now is None else now
        if abs(current - timestamp) > tolerance_seconds:
            return False

    expected = compute_signature(secret, timestamp, body)
    return hmac.compare_digest(expected, digest)


class Signer:
    """Owns per-target signing secrets.

    Secrets are written once at provisioning and only read while building
    requests. Concurrent provision/discard for the same id resolves as
    last-writer-wins.
    """

    def __init__(self, clock: Any = time.time) -> None:
        self._secrets: dict[str, str] = {}
        self._clock = clock

    def provision(self, target_id: str, secret: str | None = None) -> str:
        """Create and store the signing secret for a target.

        Args:
            target_id: Target to provision.
            secret: Caller-supplied secret. A random 32-byte hex secret is
                generated when omitted.

        Returns:
            The secret now associated with the target.

        Raises:
            ValidationError: If a supplied secret is shorter than 32 characters.
        """
        if secret is None:
            secret = secrets.token_hex(SECRET_BYTES)
        elif len(secret) < SECRET_BYTES:
            raise ValidationError(
                "signing_secret", f"must be at least {SECRET_BYTES} characters"
            )
        self._secrets[target_id] = secret
        logger.debug("Provisioned signing secret for %s", target_id)
        return secret

    def discard(self, target_id: str) -> None:
        """Forget a target's secret.

        Raises:
            NotFoundError: If no secret is provisioned for the target.
        """
        if self._secrets.pop(target_id, None) is None:
            raise NotFoundError("secret", target_id)
        logger.debug("Discarded signing secret for %s", target_id)

    def has_secret(self, target_id: str) -> bool:
        return target_id in self._secrets

    def sign(
        self,
        target_id: str,
        payload: Any,
        version: str = DEFAULT_SIGNATURE_VERSION,
    ) -> str:
        """Sign a payload for a target.

        Args:
            target_id: Target whose secret is used.
            payload: JSON-serializable payload, serialized with canonical_json().
            version: Scheme version written in front of the digest.

        Returns:
            Header value "{version}={hex_digest}, t={unix_seconds}".

        Raises:
            NotFoundError: If no secret is provisioned for the target.
        """
        secret = self._secrets.get(target_id)
        if secret is None:
            raise NotFoundError("secret", target_id)

        timestamp = int(self._clock())
        digest = compute_signature(secret, timestamp, canonical_json(payload))
        return format_signature_header(version, digest, timestamp)
