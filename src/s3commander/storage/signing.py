"""Local request signing for S3-compatible query-string authentication.

Signatures are computed in-process so no server intermediary ever sees the
secret key:
- Canonical string: "{method}\\n{content_md5}\\n{content_type}\\n{expires}\\n"
  followed by canonical amz headers and the absolute resource path, with an
  optional "?" and the sorted sub-resource query string.
- Signature: base64 of HMAC-SHA1(secret_key, canonical_string).

Upload policies are base64-encoded JSON documents signed the same way, so a
browser-style form can POST directly to storage without carrying the secret.

SECURITY: Never log secrets, signatures or full presigned URLs.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final

from s3commander.storage.errors import SigningError
from s3commander.storage.path import Path

if TYPE_CHECKING:
    from s3commander.config import Credentials

Clock = Callable[[], datetime]

# Legacy signing horizon; tolerates client/server clock drift.
DEFAULT_SKEW_SECONDS: Final[int] = 21600
DEFAULT_POLICY_EXPIRY_SECONDS: Final[int] = 900

SECURITY_TOKEN_HEADER: Final[str] = "x-amz-security-token"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class RequestSignature:
    """Result of signing a request.

    Attributes:
        signature: Base64 HMAC-SHA1 signature.
        expires_at: Unix epoch seconds after which the signature is rejected.
    """

    signature: str
    expires_at: int


@dataclass(frozen=True)
class UploadPolicy:
    """A signed upload policy document.

    Attributes:
        policy: Base64-encoded JSON policy document.
        signature: Signature over the encoded policy.
        expiration: ISO-8601 expiration embedded in the document.
    """

    policy: str
    signature: str
    expiration: str


def compute_signature(secret_key: str, string_to_sign: str) -> str:
    """Compute the base64 HMAC-SHA1 of string_to_sign."""
    if not secret_key:
        raise SigningError("Secret access key is required for signing")
    digest = hmac.new(
        key=secret_key.encode("utf-8"),
        msg=string_to_sign.encode("utf-8"),
        digestmod=hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def canonical_query_string(params: Mapping[str, str | None] | None) -> str:
    """Sorted sub-resource string. Values are included verbatim (not encoded)."""
    if not params:
        return ""
    pairs = []
    for name in sorted(params):
        value = params[name]
        pairs.append(name if value is None or value == "" else f"{name}={value}")
    return "&".join(pairs)


def canonical_resource(resource: Path) -> str:
    """Absolute resource path with each component percent-encoded."""
    return "/" + resource.to_uri_encoded()


def canonical_string(
    method: str,
    expires_at: int,
    resource: Path,
    params: Mapping[str, str | None] | None = None,
    *,
    content_md5: str = "",
    content_type: str = "",
    amz_headers: Mapping[str, str] | None = None,
) -> str:
    """Build the exact string a request signature is computed over.

    Args:
        method: HTTP verb.
        expires_at: Unix epoch seconds of expiry.
        resource: Absolute resource path, bucket name first.
        params: Sub-resources to sign (e.g. "uploadId", "versions").
        content_md5: Content-MD5 header value, if the request sends one.
        content_type: Content-Type header value, if the request sends one.
        amz_headers: x-amz-* headers sent with the request.

    Returns:
        Canonical string.
    """
    headers = ""
    for name in sorted(amz_headers or {}, key=str.lower):
        headers += f"{name.lower()}:{amz_headers[name].strip()}\n"  # type: ignore[index]

    canonical = (
        f"{method.upper()}\n{content_md5}\n{content_type}\n{expires_at}\n"
        f"{headers}{canonical_resource(resource)}"
    )
    query = canonical_query_string(params)
    if query:
        canonical += f"?{query}"
    return canonical


def _epoch(clock: Clock) -> int:
    now = clock()
    if now.tzinfo is None:
        raise SigningError("Clock returned a naive datetime; a timezone-aware clock is required")
    return int(now.timestamp())


def sign_request(
    secret_key: str,
    method: str,
    resource: Path,
    params: Mapping[str, str | None] | None = None,
    clock: Clock = utc_now,
    *,
    expires_in: int = DEFAULT_SKEW_SECONDS,
    content_md5: str = "",
    content_type: str = "",
    amz_headers: Mapping[str, str] | None = None,
) -> RequestSignature:
    """Sign a request.

    expires_at is now + expires_in. Identical inputs always produce the same
    signature.

    Example:
        >>> fixed = lambda: datetime(2024, 1, 1, tzinfo=UTC)
        >>> sig = sign_request("secret", "GET", Path("bucket/a.txt"), clock=fixed)
        >>> sig.expires_at
        1704088800
    """
    expires_at = _epoch(clock) + expires_in
    string_to_sign = canonical_string(
        method,
        expires_at,
        resource,
        params,
        content_md5=content_md5,
        content_type=content_type,
        amz_headers=amz_headers,
    )
    return RequestSignature(
        signature=compute_signature(secret_key, string_to_sign),
        expires_at=expires_at,
    )


def build_policy_document(bucket: str, key_prefix: str, expiration: str) -> dict[str, object]:
    """Policy document restricting uploads to keys under key_prefix."""
    return {
        "expiration": expiration,
        "conditions": [
            {"acl": "private"},
            {"bucket": bucket},
            ["starts-with", "$key", key_prefix],
            ["starts-with", "$Content-Type", ""],
        ],
    }


def sign_upload_policy(
    secret_key: str,
    bucket: str,
    key_prefix: str,
    clock: Clock = utc_now,
    *,
    expires_in: int = DEFAULT_POLICY_EXPIRY_SECONDS,
) -> UploadPolicy:
    """Create and sign a base64-encoded upload policy document."""
    expires = datetime.fromtimestamp(_epoch(clock) + expires_in, UTC)
    expiration = expires.strftime("%Y-%m-%dT%H:%M:%S.000Z")
    document = build_policy_document(bucket, key_prefix, expiration)
    encoded = base64.b64encode(
        json.dumps(document, separators=(",", ":")).encode("utf-8")
    ).decode("ascii")
    return UploadPolicy(
        policy=encoded,
        signature=compute_signature(secret_key, encoded),
        expiration=expiration,
    )


class RequestSigner:
    """Signs requests for one set of credentials.

    Produces the query parameters used by query-string authentication:
    AWSAccessKeyId, Expires, Signature and, for temporary credentials,
    x-amz-security-token.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        clock: Clock = utc_now,
        expires_in: int = DEFAULT_SKEW_SECONDS,
    ) -> None:
        if not credentials.access_key_id or not credentials.secret_access_key:
            raise SigningError("Access key id and secret access key are required")
        self._credentials = credentials
        self._clock = clock
        self._expires_in = expires_in

    @property
    def access_key_id(self) -> str:
        return self._credentials.access_key_id

    def _amz_headers(self) -> dict[str, str]:
        if self._credentials.session_token:
            return {SECURITY_TOKEN_HEADER: self._credentials.session_token}
        return {}

    def sign(
        self,
        method: str,
        resource: Path,
        params: Mapping[str, str | None] | None = None,
        *,
        expires_in: int | None = None,
        content_md5: str = "",
        content_type: str = "",
    ) -> RequestSignature:
        return sign_request(
            self._credentials.secret_access_key,
            method,
            resource,
            params,
            self._clock,
            expires_in=self._expires_in if expires_in is None else expires_in,
            content_md5=content_md5,
            content_type=content_type,
            amz_headers=self._amz_headers(),
        )

    def auth_params(
        self,
        method: str,
        resource: Path,
        params: Mapping[str, str | None] | None = None,
        *,
        expires_in: int | None = None,
        content_md5: str = "",
        content_type: str = "",
    ) -> dict[str, str]:
        """Query parameters that authenticate a request."""
        signed = self.sign(
            method,
            resource,
            params,
            expires_in=expires_in,
            content_md5=content_md5,
            content_type=content_type,
        )
        auth = {
            "AWSAccessKeyId": self._credentials.access_key_id,
            "Expires": str(signed.expires_at),
            "Signature": signed.signature,
        }
        auth.update(self._amz_headers())
        return auth

    def sign_upload_policy(
        self,
        bucket: str,
        key_prefix: str,
        *,
        expires_in: int = DEFAULT_POLICY_EXPIRY_SECONDS,
    ) -> UploadPolicy:
        return sign_upload_policy(
            self._credentials.secret_access_key,
            bucket,
            key_prefix,
            self._clock,
            expires_in=expires_in,
        )
