"""Parsers for S3 XML response bodies.

Element names are matched by local name so responses with or without the
S3 document namespace parse the same way.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime

from s3commander.storage.errors import ListingError
from s3commander.storage.models import MultipartPart


@dataclass(frozen=True)
class ObjectSummary:
    key: str
    size: int = 0
    last_modified: datetime | None = None
    etag: str = ""


@dataclass(frozen=True)
class VersionSummary:
    key: str
    version_id: str
    last_modified: datetime
    latest: bool
    delete_marker: bool


@dataclass(frozen=True)
class ListPage:
    """One page of a paginated listing.

    Attributes:
        prefixes: Common prefixes on this page.
        objects: Contents entries (object listings only).
        versions: Version and DeleteMarker entries (version listings only).
        truncated: Whether more pages follow.
        markers: Continuation markers for the next request.
    """

    prefixes: list[str] = field(default_factory=list)
    objects: list[ObjectSummary] = field(default_factory=list)
    versions: list[VersionSummary] = field(default_factory=list)
    truncated: bool = False
    markers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderError:
    code: str
    message: str


@dataclass(frozen=True)
class DeleteOutcome:
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MultipartUploadSummary:
    key: str
    upload_id: str
    initiated: datetime | None = None


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element, name: str, default: str = "") -> str:
    for child in element:
        if _local(child.tag) == name:
            return child.text or default
    return default


def _bool(element: ET.Element, name: str) -> bool:
    return _text(element, name).strip().lower() == "true"


def _datetime(value: str) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _parse_root(body: bytes) -> ET.Element:
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise ListingError(f"Malformed XML response: {e}", cause=e) from e


def strip_etag(etag: str) -> str:
    """Remove surrounding quotes from an ETag value."""
    return etag.strip().strip('"')


def parse_error(body: bytes) -> ProviderError | None:
    """Parse an <Error> document, or return None if the body is not one."""
    if not body:
        return None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None
    if _local(root.tag) != "Error":
        return None
    return ProviderError(code=_text(root, "Code"), message=_text(root, "Message"))


def parse_list_objects(body: bytes) -> ListPage:
    """Parse a ListBucketResult (list-type=2) page."""
    root = _parse_root(body)
    objects = []
    for entry in _children(root, "Contents"):
        size = _text(entry, "Size", "0")
        objects.append(
            ObjectSummary(
                key=_text(entry, "Key"),
                size=int(size) if size.isdigit() else 0,
                last_modified=_datetime(_text(entry, "LastModified")),
                etag=strip_etag(_text(entry, "ETag")),
            )
        )
    markers = {}
    token = _text(root, "NextContinuationToken")
    if token:
        markers["continuation-token"] = token
    return ListPage(
        prefixes=[_text(p, "Prefix") for p in _children(root, "CommonPrefixes")],
        objects=objects,
        truncated=_bool(root, "IsTruncated"),
        markers=markers,
    )


def parse_list_versions(body: bytes) -> ListPage:
    """Parse a ListVersionsResult page, including delete markers."""
    root = _parse_root(body)
    versions = []
    for entry in root:
        name = _local(entry.tag)
        if name not in ("Version", "DeleteMarker"):
            continue
        last_modified = _datetime(_text(entry, "LastModified"))
        if last_modified is None:
            raise ListingError(f"{name} entry without LastModified", key=_text(entry, "Key"))
        versions.append(
            VersionSummary(
                key=_text(entry, "Key"),
                version_id=_text(entry, "VersionId", "null"),
                last_modified=last_modified,
                latest=_bool(entry, "IsLatest"),
                delete_marker=name == "DeleteMarker",
            )
        )
    markers = {}
    key_marker = _text(root, "NextKeyMarker")
    if key_marker:
        markers["key-marker"] = key_marker
    version_marker = _text(root, "NextVersionIdMarker")
    if version_marker:
        markers["version-id-marker"] = version_marker
    return ListPage(
        prefixes=[_text(p, "Prefix") for p in _children(root, "CommonPrefixes")],
        versions=versions,
        truncated=_bool(root, "IsTruncated"),
        markers=markers,
    )


def parse_delete_result(body: bytes) -> DeleteOutcome:
    """Parse a DeleteResult into deleted keys and per-key failures."""
    root = _parse_root(body)
    failed = {}
    for entry in _children(root, "Error"):
        reason = _text(entry, "Code") or "Error"
        message = _text(entry, "Message")
        failed[_text(entry, "Key")] = f"{reason}: {message}" if message else reason
    return DeleteOutcome(
        deleted=[_text(entry, "Key") for entry in _children(root, "Deleted")],
        failed=failed,
    )


def parse_versioning_status(body: bytes) -> bool:
    """True when a VersioningConfiguration reports Status=Enabled."""
    return _text(_parse_root(body), "Status") == "Enabled"


def parse_upload_id(body: bytes) -> str:
    return _text(_parse_root(body), "UploadId")


def parse_multipart_uploads(body: bytes) -> tuple[list[MultipartUploadSummary], bool, dict[str, str]]:
    """Parse a ListMultipartUploadsResult page."""
    root = _parse_root(body)
    uploads = [
        MultipartUploadSummary(
            key=_text(entry, "Key"),
            upload_id=_text(entry, "UploadId"),
            initiated=_datetime(_text(entry, "Initiated")),
        )
        for entry in _children(root, "Upload")
    ]
    markers = {}
    if _text(root, "NextKeyMarker"):
        markers["key-marker"] = _text(root, "NextKeyMarker")
    if _text(root, "NextUploadIdMarker"):
        markers["upload-id-marker"] = _text(root, "NextUploadIdMarker")
    return uploads, _bool(root, "IsTruncated"), markers


def parse_list_parts(body: bytes) -> tuple[list[MultipartPart], bool, str]:
    """Parse a ListPartsResult page. Returns parts, truncated flag, next marker."""
    root = _parse_root(body)
    parts = [
        MultipartPart(
            part_number=int(_text(entry, "PartNumber", "0")),
            etag=strip_etag(_text(entry, "ETag")),
            size=int(_text(entry, "Size", "0")),
        )
        for entry in _children(root, "Part")
    ]
    return parts, _bool(root, "IsTruncated"), _text(root, "NextPartNumberMarker")


def build_delete_request(keys: list[str]) -> bytes:
    """Build a quiet multi-object Delete document."""
    root = ET.Element("Delete")
    ET.SubElement(root, "Quiet").text = "true"
    for key in keys:
        ET.SubElement(ET.SubElement(root, "Object"), "Key").text = key
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def build_complete_request(parts: list[MultipartPart]) -> bytes:
    """Build a CompleteMultipartUpload document with parts in ascending order."""
    root = ET.Element("CompleteMultipartUpload")
    for part in sorted(parts, key=lambda p: p.part_number):
        element = ET.SubElement(root, "Part")
        ET.SubElement(element, "PartNumber").text = str(part.part_number)
        ET.SubElement(element, "ETag").text = f'"{part.etag}"'
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
