"""Pytest configuration and fixtures for s3commander tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import os

import pytest

from s3commander.config import ENV_PREFIX, CommanderSettings, Credentials
from s3commander.storage.s3_backend import S3Backend
from tests.fakes import TEST_BUCKET, FakeS3, make_backend


@pytest.fixture(autouse=True)
def clear_commander_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove S3COMMANDER_* variables so the host environment never leaks in."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(access_key_id="AKIDEXAMPLE", secret_access_key="test-secret")


@pytest.fixture
def settings() -> CommanderSettings:
    return CommanderSettings(bucket=TEST_BUCKET)


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3(TEST_BUCKET)


@pytest.fixture
def versioned_s3() -> FakeS3:
    return FakeS3(TEST_BUCKET, versioning=True)


@pytest.fixture
def backend(fake_s3: FakeS3, credentials: Credentials) -> S3Backend:
    return make_backend(fake_s3, credentials)


@pytest.fixture
def versioned_backend(versioned_s3: FakeS3, credentials: Credentials) -> S3Backend:
    return make_backend(versioned_s3, credentials)
