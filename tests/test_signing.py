"""Tests for request signing and upload policies.

Tests verify:
1. Canonical strings follow the query-string authentication format
2. Signatures are deterministic and match a published vector
3. Session tokens are signed as amz headers and sent as query parameters
4. Upload policies restrict keys to the folder prefix
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import UTC, datetime

import pytest

from s3commander.config import Credentials
from s3commander.storage.errors import SigningError
from s3commander.storage.path import Path
from s3commander.storage.signing import (
    DEFAULT_SKEW_SECONDS,
    RequestSigner,
    canonical_query_string,
    canonical_string,
    compute_signature,
    sign_request,
    sign_upload_policy,
)
from tests.fakes import FIXED_NOW, fixed_clock

FIXED_EPOCH = int(FIXED_NOW.timestamp())


class TestCanonicalString:
    """Tests for canonical string construction."""

    def test_default_format(self) -> None:
        result = canonical_string("get", 1700000000, Path("bucket/a b.txt"))
        assert result == "GET\n\n\n1700000000\n/bucket/a%20b.txt"

    def test_subresources_sorted_and_appended(self) -> None:
        result = canonical_string(
            "PUT",
            1700000000,
            Path("bucket/big.bin"),
            {"uploadId": "abc", "partNumber": "2"},
        )
        assert result.endswith("/bucket/big.bin?partNumber=2&uploadId=abc")

    def test_valueless_subresource(self) -> None:
        assert canonical_query_string({"versions": None}) == "versions"
        assert canonical_query_string({"delete": ""}) == "delete"

    def test_bucket_level_resource_keeps_trailing_separator(self) -> None:
        result = canonical_string("GET", 1, Path("bucket/"), {"versioning": None})
        assert result.endswith("\n/bucket/?versioning")

    def test_md5_type_and_amz_headers(self) -> None:
        result = canonical_string(
            "POST",
            5,
            Path("bucket/"),
            content_md5="bWQ1",
            content_type="application/xml",
            amz_headers={"X-Amz-Security-Token": " tok "},
        )
        assert result == "POST\nbWQ1\napplication/xml\n5\nx-amz-security-token:tok\n/bucket/"


class TestSignature:
    """Tests for HMAC-SHA1 signatures."""

    def test_published_vector(self) -> None:
        """Query-string authentication example from the S3 developer guide."""
        signature = compute_signature(
            "wJalrXUtnFEMI/K7MDENG/bPxRfiCYEXAMPLEKEY",
            "GET\n\n\n1175139620\n/johnsmith/photos/puppy.jpg",
        )
        assert signature == "NpgCjnDzrM+WFzoENXmpNDUsSn8="

    def test_matches_hmac_of_canonical_string(self) -> None:
        signed = sign_request("secret", "GET", Path("bucket/a.txt"), clock=fixed_clock)
        expected = base64.b64encode(
            hmac.new(
                b"secret",
                f"GET\n\n\n{FIXED_EPOCH + DEFAULT_SKEW_SECONDS}\n/bucket/a.txt".encode(),
                hashlib.sha1,
            ).digest()
        ).decode()
        assert signed.signature == expected

    def test_expiry_is_now_plus_horizon(self) -> None:
        signed = sign_request("secret", "GET", Path("bucket/a.txt"), clock=fixed_clock)
        assert signed.expires_at == FIXED_EPOCH + 21600

    def test_deterministic(self) -> None:
        first = sign_request("secret", "DELETE", Path("b/k"), clock=fixed_clock, expires_in=60)
        second = sign_request("secret", "DELETE", Path("b/k"), clock=fixed_clock, expires_in=60)
        assert first == second

    def test_different_secrets_differ(self) -> None:
        one = sign_request("one", "GET", Path("b/k"), clock=fixed_clock)
        two = sign_request("two", "GET", Path("b/k"), clock=fixed_clock)
        assert one.signature != two.signature

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(SigningError):
            compute_signature("", "GET")

    def test_naive_clock_rejected(self) -> None:
        with pytest.raises(SigningError, match="naive"):
            sign_request("secret", "GET", Path("b/k"), clock=lambda: datetime(2024, 1, 1))


class TestRequestSigner:
    """Tests for RequestSigner query parameters."""

    def test_auth_params(self) -> None:
        signer = RequestSigner(
            Credentials(access_key_id="AKID", secret_access_key="secret"),
            clock=fixed_clock,
            expires_in=900,
        )
        params = signer.auth_params("GET", Path("bucket/a.txt"))
        assert params["AWSAccessKeyId"] == "AKID"
        assert params["Expires"] == str(FIXED_EPOCH + 900)
        assert params["Signature"] == compute_signature(
            "secret", f"GET\n\n\n{FIXED_EPOCH + 900}\n/bucket/a.txt"
        )
        assert "x-amz-security-token" not in params

    def test_session_token_signed_and_sent(self) -> None:
        signer = RequestSigner(
            Credentials(access_key_id="AKID", secret_access_key="secret", session_token="tok"),
            clock=fixed_clock,
            expires_in=900,
        )
        params = signer.auth_params("GET", Path("bucket/a.txt"))
        assert params["x-amz-security-token"] == "tok"
        assert params["Signature"] == compute_signature(
            "secret", f"GET\n\n\n{FIXED_EPOCH + 900}\nx-amz-security-token:tok\n/bucket/a.txt"
        )

    def test_per_call_expiry_override(self) -> None:
        signer = RequestSigner(
            Credentials(access_key_id="AKID", secret_access_key="secret"), clock=fixed_clock
        )
        params = signer.auth_params("GET", Path("bucket/a.txt"), expires_in=60)
        assert params["Expires"] == str(FIXED_EPOCH + 60)

    def test_missing_secret_rejected(self) -> None:
        with pytest.raises(SigningError):
            RequestSigner(Credentials(access_key_id="AKID", secret_access_key=""))


class TestUploadPolicy:
    """Tests for signed upload policy documents."""

    def test_policy_document(self) -> None:
        policy = sign_upload_policy("secret", "bucket", "photos/", fixed_clock, expires_in=900)
        document = json.loads(base64.b64decode(policy.policy))
        assert document["expiration"] == "2024-01-01T00:15:00.000Z"
        assert {"bucket": "bucket"} in document["conditions"]
        assert ["starts-with", "$key", "photos/"] in document["conditions"]
        assert policy.expiration == document["expiration"]

    def test_policy_signature_covers_encoded_document(self) -> None:
        policy = sign_upload_policy("secret", "bucket", "", fixed_clock)
        assert policy.signature == compute_signature("secret", policy.policy)


class TestInputSensitivity:
    """Changing any single input changes the signature."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"secret_key": "other"},
            {"method": "PUT"},
            {"resource": Path("bucket/b.txt")},
            {"params": {"versionId": "v1"}},
            {"clock": lambda: datetime(2024, 1, 2, tzinfo=UTC)},
        ],
    )
    def test_single_input_change(self, kwargs: dict) -> None:
        base = {
            "secret_key": "secret",
            "method": "GET",
            "resource": Path("bucket/a.txt"),
            "params": None,
            "clock": fixed_clock,
        }
        original = sign_request(**base)
        changed = sign_request(**{**base, **kwargs})
        assert changed.signature != original.signature
