"""Tests for S3 XML response parsing."""

from __future__ import annotations

import pytest

from s3commander.storage.errors import ListingError
from s3commander.storage.responses import (
    parse_delete_result,
    parse_error,
    parse_list_objects,
    parse_list_versions,
    parse_multipart_uploads,
    parse_versioning_status,
)

NS = 'xmlns="http://s3.amazonaws.com/doc/2006-03-01/"'


class TestListParsing:
    """Tests for listing documents."""

    def test_namespaced_and_plain_parse_alike(self) -> None:
        body = (
            "<ListBucketResult {ns}><IsTruncated>true</IsTruncated>"
            "<NextContinuationToken>tok</NextContinuationToken>"
            '<Contents><Key>a.txt</Key><Size>3</Size><ETag>"abc"</ETag></Contents>'
            "<CommonPrefixes><Prefix>docs/</Prefix></CommonPrefixes>"
            "</ListBucketResult>"
        )
        for ns in (NS, ""):
            page = parse_list_objects(body.format(ns=ns).encode())
            assert page.prefixes == ["docs/"]
            assert page.objects[0].key == "a.txt"
            assert page.objects[0].size == 3
            assert page.objects[0].etag == "abc"
            assert page.truncated is True
            assert page.markers == {"continuation-token": "tok"}

    def test_versions_with_delete_marker(self) -> None:
        body = (
            f"<ListVersionsResult {NS}><IsTruncated>false</IsTruncated>"
            "<DeleteMarker><Key>a.txt</Key><VersionId>v2</VersionId>"
            "<IsLatest>true</IsLatest><LastModified>2024-01-02T00:00:00.000Z</LastModified>"
            "</DeleteMarker>"
            "<Version><Key>a.txt</Key><IsLatest>false</IsLatest>"
            "<LastModified>2024-01-01T00:00:00.000Z</LastModified></Version>"
            "</ListVersionsResult>"
        ).encode()
        page = parse_list_versions(body)
        marker, version = page.versions
        assert marker.delete_marker is True
        assert marker.latest is True
        assert version.version_id == "null"
        assert version.last_modified < marker.last_modified
        assert page.markers == {}

    def test_version_without_timestamp_rejected(self) -> None:
        body = b"<ListVersionsResult><Version><Key>a</Key></Version></ListVersionsResult>"
        with pytest.raises(ListingError):
            parse_list_versions(body)

    def test_multipart_uploads(self) -> None:
        body = (
            "<ListMultipartUploadsResult><IsTruncated>false</IsTruncated>"
            "<Upload><Key>big.bin</Key><UploadId>u1</UploadId>"
            "<Initiated>2024-01-01T00:00:00.000Z</Initiated></Upload>"
            "</ListMultipartUploadsResult>"
        ).encode()
        uploads, truncated, markers = parse_multipart_uploads(body)
        assert [u.upload_id for u in uploads] == ["u1"]
        assert truncated is False
        assert markers == {}


class TestOtherDocuments:
    """Tests for error, delete and versioning documents."""

    def test_parse_error(self) -> None:
        error = parse_error(b"<Error><Code>NoSuchKey</Code><Message>gone</Message></Error>")
        assert error is not None
        assert (error.code, error.message) == ("NoSuchKey", "gone")

    def test_non_error_bodies(self) -> None:
        assert parse_error(b"") is None
        assert parse_error(b"not xml") is None
        assert parse_error(b"<DeleteResult/>") is None

    def test_delete_result(self) -> None:
        body = (
            f"<DeleteResult {NS}><Deleted><Key>a</Key></Deleted>"
            "<Error><Key>b</Key><Code>AccessDenied</Code><Message>no</Message></Error>"
            "</DeleteResult>"
        ).encode()
        outcome = parse_delete_result(body)
        assert outcome.deleted == ["a"]
        assert outcome.failed == {"b": "AccessDenied: no"}

    def test_versioning_status(self) -> None:
        assert parse_versioning_status(b"<VersioningConfiguration><Status>Enabled</Status></VersioningConfiguration>")
        assert not parse_versioning_status(b"<VersioningConfiguration><Status>Suspended</Status></VersioningConfiguration>")
        assert not parse_versioning_status(b"<VersioningConfiguration/>")
