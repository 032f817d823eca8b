"""S3 REST backend with locally signed requests.

Every request is authenticated with query-string signatures computed by
RequestSigner, so the client talks to storage directly:
- Virtual-hosted addressing ("{bucket}.{endpoint}") by default
- Path-style addressing ("{endpoint}/{bucket}") when the bucket name contains
  a ".", since dotted names break TLS hostname matching
- Listings use the "/" delimiter; common prefixes become folders

Expired signatures are detected when the provider rejects a request. The
request is re-signed and retried once; a second rejection raises SigningError.

Security:
- Never log query strings (they carry signatures and security tokens)
"""

from __future__ import annotations

import base64
import hashlib
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from types import TracebackType
from typing import Final
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from s3commander.config import CommanderSettings, Credentials
from s3commander.storage.backend import ObjectStoreBackend
from s3commander.storage.errors import (
    CommanderError,
    ListingError,
    NotAFileError,
    NotAFolderError,
    PartialDeleteError,
    RequestError,
    SigningError,
    UploadError,
    UploadErrorKind,
)
from s3commander.storage.models import (
    Bucket,
    File,
    FileVersion,
    Folder,
    FolderContents,
    MultipartPart,
    UploadConfig,
)
from s3commander.storage.path import SEPARATOR, Path
from s3commander.storage.responses import (
    build_complete_request,
    build_delete_request,
    parse_delete_result,
    parse_error,
    parse_list_objects,
    parse_list_parts,
    parse_list_versions,
    parse_multipart_uploads,
    parse_upload_id,
    parse_versioning_status,
    strip_etag,
)
from s3commander.storage.signing import Clock, RequestSigner, utc_now
from s3commander.storage.tracing import traced_backend_operation

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE: Final[int] = 1000
EXPIRED_CODES: Final[frozenset[str]] = frozenset({"RequestExpired", "ExpiredToken"})
SIGNING_ERROR_CODES: Final[frozenset[str]] = frozenset(
    {
        "SignatureDoesNotMatch",
        "InvalidAccessKeyId",
        "RequestTimeTooSkewed",
        "InvalidToken",
        *EXPIRED_CODES,
    }
)

Params = Mapping[str, str | None]

_EPOCH: Final[datetime] = datetime.fromtimestamp(0, UTC)


def _sanitize_url(url: str) -> str:
    """Drop query string and fragment from a URL for logging."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _is_expired(response: httpx.Response) -> bool:
    """Whether the provider rejected the request because its signature expired."""
    if response.status_code not in (400, 403):
        return False
    error = parse_error(response.content)
    if error is None:
        return False
    if error.code in EXPIRED_CODES:
        return True
    return error.code == "AccessDenied" and "expired" in error.message.lower()


def _make_error(
    failure: type[CommanderError],
    message: str,
    *,
    key: str,
    status_code: int | None = None,
    cause: Exception | None = None,
) -> CommanderError:
    if failure is UploadError:
        transient = status_code is None or status_code >= 500 or status_code == 429
        return UploadError(
            message,
            kind=UploadErrorKind.TRANSIENT if transient else UploadErrorKind.PROVIDER_REJECTED,
            key=key,
            status_code=status_code,
            cause=cause,
        )
    if failure in (ListingError, RequestError):
        return failure(message, key=key, status_code=status_code, cause=cause)  # type: ignore[call-arg]
    return failure(message, key=key, status_code=status_code)


def _require_folder(path: Path) -> None:
    if not path.is_folder() and not path.is_root():
        raise NotAFolderError(path)


def _require_file(path: Path) -> None:
    if path.is_folder() or path.is_root():
        raise NotAFileError(path)


class S3Backend(ObjectStoreBackend):
    """S3-compatible REST client for one bucket.

    Usage:
        async with S3Backend(settings, credentials) as backend:
            contents = await backend.list_folder(Path("photos/"))
    """

    def __init__(
        self,
        settings: CommanderSettings,
        credentials: Credentials,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the backend.

        Args:
            settings: Bucket, endpoint and expiry settings.
            credentials: Already-resolved credentials.
            http_client: Optional client for dependency injection (testing).
            clock: Clock used for signature expiry.
        """
        self._settings = settings
        self._signer = RequestSigner(
            credentials, clock=clock, expires_in=settings.request_expiry_seconds
        )
        self._session_token = credentials.session_token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.timeout_seconds)

    async def __aenter__(self) -> S3Backend:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def backend_name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    @property
    def path_style(self) -> bool:
        """Path-style addressing is used for dotted bucket names."""
        return "." in self.bucket

    def base_url(self) -> str:
        host = self._settings.service_host
        scheme = self._settings.scheme
        if self.path_style:
            return f"{scheme}://{host}/{quote(self.bucket, safe='')}"
        return f"{scheme}://{self.bucket}.{host}"

    def object_url(self, key: Path) -> str:
        return f"{self.base_url()}/{key.to_uri_encoded()}"

    def _resource(self, key: Path) -> Path:
        """Absolute resource path used in the canonical string."""
        return Path(self.bucket + SEPARATOR).concat(key)

    async def _send(
        self,
        method: str,
        key: Path,
        *,
        subresources: Params | None = None,
        params: Params | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        content_md5: str = "",
    ) -> httpx.Response:
        """Sign and send a request, re-signing once if the signature expired.

        Raises:
            httpx.HTTPError: On transport failure.
            SigningError: If the provider rejects the signature.
        """
        url = self.object_url(key)
        for attempt in range(2):
            auth = self._signer.auth_params(
                method, self._resource(key), subresources, content_md5=content_md5
            )
            query = {name: value or "" for name, value in {**(subresources or {}), **(params or {})}.items()}
            query.update(auth)
            logger.debug("%s %s", method, _sanitize_url(url))
            response = await self._client.request(
                method, url, params=query, content=content, headers=headers
            )
            if not _is_expired(response):
                break
            if attempt == 0:
                logger.info("Signature expired for %s %s; re-signing", method, _sanitize_url(url))
        else:
            raise SigningError(
                "Request signature expired after re-signing",
                key=str(key),
                status_code=response.status_code,
            )
        return response

    def _check(
        self,
        response: httpx.Response,
        key: Path,
        failure: type[CommanderError] = RequestError,
    ) -> None:
        """Raise failure when the response is not a success."""
        if response.is_success:
            return
        error = parse_error(response.content)
        if error is not None and error.code in SIGNING_ERROR_CODES:
            raise SigningError(
                f"{error.code}: {error.message}", key=str(key), status_code=response.status_code
            )
        if error is not None and error.code:
            message = f"{error.code}: {error.message}" if error.message else error.code
        else:
            message = f"HTTP {response.status_code}"
        raise _make_error(failure, message, key=str(key), status_code=response.status_code)

    async def _call(
        self,
        method: str,
        key: Path,
        failure: type[CommanderError] = RequestError,
        **kwargs: object,
    ) -> httpx.Response:
        """Send a request and map transport and provider failures to failure."""
        try:
            response = await self._send(method, key, **kwargs)  # type: ignore[arg-type]
        except httpx.HTTPError as e:
            raise _make_error(
                failure, f"Transport error: {type(e).__name__}: {e}", key=str(key), cause=e
            ) from e
        self._check(response, key, failure)
        return response

    def _link(self, file: Path, version_id: str | None = None) -> str | None:
        if not self._settings.allow_download:
            return None
        return self.get_download_link(file, version_id)

    @traced_backend_operation("get_bucket")
    async def get_bucket(self) -> Bucket:
        response = await self._call("GET", Path(), ListingError, subresources={"versioning": None})
        return Bucket(name=self.bucket, versioning=parse_versioning_status(response.content))

    @traced_backend_operation("list_folder")
    async def list_folder(self, folder: Path) -> FolderContents:
        _require_folder(folder)
        prefix = str(folder)
        folders: list[Folder] = []
        files: list[File] = []
        markers: dict[str, str] = {}
        while True:
            params = {"list-type": "2", "prefix": prefix, "delimiter": SEPARATOR, **markers}
            response = await self._call("GET", Path(), ListingError, params=params)
            page = parse_list_objects(response.content)
            folders.extend(Folder(Path(p)) for p in page.prefixes)
            for obj in page.objects:
                if obj.key == prefix or obj.key.endswith(SEPARATOR):
                    continue
                path = Path(obj.key)
                files.append(File(path, download_link=self._link(path), size=obj.size))
            if not page.truncated or not page.markers:
                break
            markers = page.markers
        logger.debug("Listed %s: %d folders, %d files", prefix or "/", len(folders), len(files))
        return FolderContents(folders=folders, files=files)

    @traced_backend_operation("list_folder_with_history")
    async def list_folder_with_history(self, folder: Path) -> FolderContents:
        _require_folder(folder)
        prefix = str(folder)
        prefixes: dict[str, None] = {}
        versions: dict[str, list[FileVersion]] = {}
        markers: dict[str, str] = {}
        while True:
            params = {"prefix": prefix, "delimiter": SEPARATOR, **markers}
            response = await self._call(
                "GET", Path(), ListingError, subresources={"versions": None}, params=params
            )
            page = parse_list_versions(response.content)
            prefixes.update(dict.fromkeys(page.prefixes))
            for entry in page.versions:
                if entry.key == prefix or entry.key.endswith(SEPARATOR):
                    continue
                link = None
                if not entry.delete_marker:
                    link = self._link(Path(entry.key), entry.version_id)
                versions.setdefault(entry.key, []).append(
                    FileVersion(
                        version_id=entry.version_id,
                        last_modified=entry.last_modified,
                        latest=entry.latest,
                        delete_marker=entry.delete_marker,
                        download_link=link,
                    )
                )
            if not page.truncated or not page.markers:
                break
            markers = page.markers

        files = []
        for key, history in versions.items():
            history.sort(key=lambda v: (v.last_modified, v.latest))
            deleted = history[-1].delete_marker
            path = Path(key)
            files.append(
                File(
                    path,
                    download_link=None if deleted else self._link(path),
                    deleted=deleted,
                    versions=tuple(history),
                )
            )
        return FolderContents(folders=[Folder(Path(p)) for p in prefixes], files=files)

    @traced_backend_operation("create_folder")
    async def create_folder(self, folder: Path) -> Folder:
        if not folder.is_folder():
            raise NotAFolderError(folder)
        await self._call("PUT", folder, content=b"")
        logger.info("Created folder %s", folder)
        return Folder(folder.clone())

    async def _list_keys(self, prefix: str) -> list[str]:
        """All keys under prefix, exhausting pagination."""
        keys: list[str] = []
        markers: dict[str, str] = {}
        while True:
            params = {"list-type": "2", "prefix": prefix, **markers}
            response = await self._call("GET", Path(), ListingError, params=params)
            page = parse_list_objects(response.content)
            keys.extend(obj.key for obj in page.objects)
            if not page.truncated or not page.markers:
                return keys
            markers = page.markers

    @traced_backend_operation("delete_folder")
    async def delete_folder(self, folder: Path) -> list[str]:
        if not folder.is_folder():
            raise NotAFolderError(folder)
        keys = await self._list_keys(str(folder))
        deleted: list[str] = []
        failed: dict[str, str] = {}
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            body = build_delete_request(batch)
            md5 = base64.b64encode(hashlib.md5(body, usedforsecurity=False).digest()).decode()
            try:
                response = await self._send(
                    "POST",
                    Path(),
                    subresources={"delete": None},
                    content=body,
                    headers={"Content-MD5": md5},
                    content_md5=md5,
                )
            except httpx.HTTPError as e:
                logger.warning("Bulk delete batch of %d keys failed: %s", len(batch), e)
                failed.update(dict.fromkeys(batch, f"Transport error: {type(e).__name__}"))
                continue
            except CommanderError as e:
                logger.warning("Bulk delete batch of %d keys failed: %s", len(batch), e.message)
                failed.update(dict.fromkeys(batch, e.message))
                continue
            if not response.is_success:
                error = parse_error(response.content)
                reason = error.code if error is not None else f"HTTP {response.status_code}"
                failed.update(dict.fromkeys(batch, reason))
                continue
            outcome = parse_delete_result(response.content)
            failed.update(outcome.failed)
            deleted.extend(key for key in batch if key not in outcome.failed)

        if failed:
            logger.warning("Deleting %s left %d key(s) behind", folder, len(failed))
            raise PartialDeleteError(failed, deleted=deleted)
        logger.info("Deleted folder %s (%d keys)", folder, len(deleted))
        return deleted

    @traced_backend_operation("delete_file")
    async def delete_file(self, file: Path) -> None:
        _require_file(file)
        await self._call("DELETE", file)
        logger.info("Deleted file %s", file)

    def get_download_link(self, file: Path, version_id: str | None = None) -> str:
        _require_file(file)
        subresources = {"versionId": version_id} if version_id else None
        query: dict[str, str] = dict(subresources or {})
        query.update(
            self._signer.auth_params(
                "GET",
                self._resource(file),
                subresources,
                expires_in=self._settings.link_expiry_seconds,
            )
        )
        return str(httpx.URL(self.object_url(file), params=query))

    def get_upload_policy(self, folder: Path) -> UploadConfig:
        _require_folder(folder)
        key_prefix = str(folder)
        policy = self._signer.sign_upload_policy(
            self.bucket, key_prefix, expires_in=self._settings.link_expiry_seconds
        )
        fields = {
            "key": key_prefix + "${filename}",
            "AWSAccessKeyId": self._signer.access_key_id,
            "acl": "private",
            "policy": policy.policy,
            "signature": policy.signature,
            "Content-Type": "",
        }
        if self._session_token:
            fields["x-amz-security-token"] = self._session_token
        return UploadConfig(url=self.base_url() + SEPARATOR, fields=fields)

    @traced_backend_operation("put_object")
    async def put_object(self, file: Path, data: bytes) -> str:
        _require_file(file)
        response = await self._call("PUT", file, UploadError, content=data)
        return strip_etag(response.headers.get("ETag", ""))

    async def post_object(self, config: UploadConfig, filename: str, data: bytes) -> None:
        fields = dict(config.fields)
        if not fields.get("Content-Type"):
            fields["Content-Type"] = "application/octet-stream"
        key = fields.get("key", "").replace("${filename}", filename)
        logger.debug("POST %s", _sanitize_url(config.url))
        try:
            response = await self._client.post(
                config.url, data=fields, files={"file": (filename, data)}
            )
        except httpx.HTTPError as e:
            raise _make_error(UploadError, f"Transport error: {e}", key=key, cause=e) from e
        self._check(response, Path(key), UploadError)

    @traced_backend_operation("find_multipart_upload")
    async def find_multipart_upload(self, file: Path) -> str | None:
        _require_file(file)
        key = str(file)
        found = []
        markers: dict[str, str] = {}
        while True:
            response = await self._call(
                "GET",
                Path(),
                UploadError,
                subresources={"uploads": None},
                params={"prefix": key, **markers},
            )
            uploads, truncated, markers = parse_multipart_uploads(response.content)
            found.extend(u for u in uploads if u.key == key)
            if not truncated or not markers:
                break
        if not found:
            return None
        newest = max(found, key=lambda u: u.initiated or _EPOCH)
        return newest.upload_id

    @traced_backend_operation("create_multipart_upload")
    async def create_multipart_upload(self, file: Path) -> str:
        _require_file(file)
        response = await self._call("POST", file, UploadError, subresources={"uploads": None})
        upload_id = parse_upload_id(response.content)
        if not upload_id:
            raise UploadError(
                "Provider returned no upload id",
                kind=UploadErrorKind.PROVIDER_REJECTED,
                key=str(file),
            )
        return upload_id

    async def upload_part(self, file: Path, upload_id: str, part_number: int, data: bytes) -> str:
        response = await self._call(
            "PUT",
            file,
            UploadError,
            subresources={"partNumber": str(part_number), "uploadId": upload_id},
            content=data,
        )
        return strip_etag(response.headers.get("ETag", ""))

    @traced_backend_operation("list_parts")
    async def list_parts(self, file: Path, upload_id: str) -> list[MultipartPart]:
        parts: list[MultipartPart] = []
        marker = ""
        while True:
            params = {"part-number-marker": marker} if marker else None
            response = await self._call(
                "GET", file, UploadError, subresources={"uploadId": upload_id}, params=params
            )
            page, truncated, marker = parse_list_parts(response.content)
            parts.extend(page)
            if not truncated or not marker:
                return sorted(parts, key=lambda p: p.part_number)

    @traced_backend_operation("complete_multipart_upload")
    async def complete_multipart_upload(
        self, file: Path, upload_id: str, parts: list[MultipartPart]
    ) -> None:
        response = await self._call(
            "POST",
            file,
            UploadError,
            subresources={"uploadId": upload_id},
            content=build_complete_request(parts),
        )
        # Completion can report an error inside a 200 response.
        error = parse_error(response.content)
        if error is not None:
            raise UploadError(
                f"{error.code}: {error.message}",
                kind=UploadErrorKind.PROVIDER_REJECTED,
                key=str(file),
                status_code=response.status_code,
            )

    @traced_backend_operation("abort_multipart_upload")
    async def abort_multipart_upload(self, file: Path, upload_id: str) -> None:
        try:
            await self._call("DELETE", file, UploadError, subresources={"uploadId": upload_id})
        except UploadError as e:
            if e.status_code != 404:
                raise
            logger.debug("Multipart upload %s already gone", upload_id)
