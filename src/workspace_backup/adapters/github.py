"""
GitHub contents adapter.

Stores the snapshot as a file in a GitHub repository through the REST
contents API. The contents API transports file bodies as base64, so this
adapter's encoded form is the base64 text of the snapshot JSON; decoding
reverses it and yields the same logical snapshot as every other adapter.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

import httpx

from .base import AdapterKind, StorageAdapter, UploadResult
from ..config import GitHubConfig, TransportConfig
from ..exceptions import MalformedSnapshot, NotFound, TransportError, Unauthenticated
from ..snapshot.codec import RawSnapshot, SnapshotCodec
from ..snapshot.models import File, Folder, Snapshot
from ..utils.transport import RetryingTransport

GITHUB_API_VERSION = "2022-11-28"


def encode_base64(folders: Iterable[Folder], files: Iterable[File],
                  codec: SnapshotCodec) -> str:
    text = codec.encode(folders, files)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_base64(raw: RawSnapshot, codec: SnapshotCodec) -> Snapshot:
    """
    Decode base64 framed snapshot text.

    Whitespace is ignored since the contents API wraps base64 lines.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("ascii", errors="replace")
    if not isinstance(raw, str):
        raise MalformedSnapshot("GitHub snapshot payload must be base64 text")

    try:
        data = base64.b64decode("".join(raw.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedSnapshot(f"Snapshot payload is not valid base64: {e}") from e

    return codec.decode(data)


class GitHubContentsClient:
    """
    Minimal GitHub contents API client used by the adapter.

    Upload requires a token; download works without one for public
    repositories.
    """

    def __init__(
        self,
        config: GitHubConfig,
        transport_config: Optional[TransportConfig] = None,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[RetryingTransport] = None
    ):
        """
        Initialize client.

        Args:
            config: GitHub adapter configuration
            transport_config: Retry and timeout settings
            http_client: Preconfigured httpx client (tests inject a mock transport)
            logger: Logger instance
            transport: Retrying transport (built from transport_config if None)
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        transport_config = transport_config or TransportConfig()

        self.http = http_client or httpx.Client(
            base_url=config.api_url,
            timeout=transport_config.timeout
        )
        self.transport = transport or RetryingTransport(
            backend="github",
            max_retries=transport_config.max_retries,
            retry_backoff_factor=transport_config.retry_backoff_factor,
            retry_max_delay=transport_config.retry_max_delay,
            circuit_breaker_threshold=transport_config.circuit_breaker_threshold,
            circuit_breaker_timeout=transport_config.circuit_breaker_timeout,
            logger=self.logger
        )

        self._token: Optional[str] = config.token or None
        self._verified_login: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self._verified_login is not None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _contents_path(self, path: str) -> str:
        return (
            f"/repos/{quote(self.config.owner)}/{quote(self.config.repo)}"
            f"/contents/{quote(path.lstrip('/'))}"
        )

    @staticmethod
    def _backend_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("message", ""))
        return ""

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        Send one request and translate auth and transport failures.

        Returns the response for every other status; callers decide what a
        404 means.
        """
        try:
            response = self.http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"GitHub request {method} {path} failed", backend_message=str(e)) from e

        if response.status_code == 401:
            self._verified_login = None
            raise Unauthenticated(
                f"GitHub rejected the credentials: {self._backend_message(response)}"
            )
        return response

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code >= 400:
            raise TransportError(
                f"GitHub {operation} failed",
                status=response.status_code,
                backend_message=self._backend_message(response)
            )

    # Capabilities

    def authenticate(self, token: Optional[str] = None) -> None:
        """
        Set and verify the API token.

        Calling it again without a new token is a no-op once verified.

        Args:
            token: Personal access token (default: configured GITHUB_TOKEN)

        Raises:
            Unauthenticated: If no token is available or GitHub rejects it
        """
        if token:
            if token != self._token:
                self._verified_login = None
            self._token = token

        if not self._token:
            raise Unauthenticated("A GitHub token is required; set GITHUB_TOKEN")

        if self._verified_login is not None:
            return

        def verify() -> str:
            response = self._send("GET", "/user")
            self._raise_for_status(response, "token verification")
            return response.json().get("login", "")

        self._verified_login = self.transport.call(verify, "github.authenticate") or "unknown"
        self.logger.info(f"Authenticated to GitHub as {self._verified_login}")

    def upload(self, payload: str) -> UploadResult:
        """
        Create or update the snapshot file.

        Args:
            payload: Base64 encoded snapshot (adapter encoding)

        Returns:
            UploadResult with the repository path and its web URL
        """
        if not self._token:
            raise Unauthenticated("Uploading to GitHub requires a token; set GITHUB_TOKEN")

        path = self.config.path
        contents_path = self._contents_path(path)

        def put() -> Dict[str, Any]:
            body: Dict[str, Any] = {
                "message": self.config.commit_message,
                "content": "".join(payload.split()),
                "branch": self.config.branch,
            }
            sha = self._existing_sha(contents_path)
            if sha:
                body["sha"] = sha

            response = self._send("PUT", contents_path, json=body)
            if response.status_code == 404:
                raise NotFound(
                    f"{self.config.owner}/{self.config.repo}",
                    self._backend_message(response)
                )
            self._raise_for_status(response, "upload")
            return response.json()

        data = self.transport.call(put, f"github.upload({path})")
        content = data.get("content") or {}
        self.logger.info(f"Uploaded snapshot to GitHub: {path}")
        return UploadResult(
            remote_id=content.get("path", path),
            remote_url=content.get("html_url")
        )

    def _existing_sha(self, contents_path: str) -> Optional[str]:
        response = self._send("GET", contents_path, params={"ref": self.config.branch})
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "lookup")
        data = response.json()
        return data.get("sha") if isinstance(data, dict) else None

    def download(self, remote_id: str) -> str:
        """
        Fetch a snapshot file.

        Args:
            remote_id: Path of the file inside the repository

        Returns:
            Base64 encoded snapshot (adapter encoding)
        """
        contents_path = self._contents_path(remote_id)

        def get() -> str:
            response = self._send("GET", contents_path, params={"ref": self.config.branch})
            if response.status_code == 404:
                raise NotFound(remote_id, self._backend_message(response))
            self._raise_for_status(response, "download")

            data = response.json()
            if not isinstance(data, dict) or data.get("type", "file") != "file":
                raise NotFound(remote_id, "path is not a file")

            content = data.get("content") or ""
            if data.get("encoding") == "base64" and content:
                return "".join(content.split())

            # Files above the contents API size limit come back without a
            # body; the blob API still serves them
            return self._download_blob(data["sha"], remote_id)

        return self.transport.call(get, f"github.download({remote_id})")

    def _download_blob(self, sha: str, remote_id: str) -> str:
        blob_path = (
            f"/repos/{quote(self.config.owner)}/{quote(self.config.repo)}/git/blobs/{sha}"
        )
        response = self._send("GET", blob_path)
        if response.status_code == 404:
            raise NotFound(remote_id, self._backend_message(response))
        self._raise_for_status(response, "blob download")
        return "".join(response.json().get("content", "").split())

    def close(self) -> None:
        self.http.close()


def create_github_adapter(
    config: Optional[GitHubConfig] = None,
    transport_config: Optional[TransportConfig] = None,
    http_client: Optional[httpx.Client] = None,
    codec: Optional[SnapshotCodec] = None,
    logger: Optional[logging.Logger] = None
) -> StorageAdapter:
    """
    Create the GitHub contents adapter.

    Args:
        config: GitHub configuration (default: from environment)
        transport_config: Retry and timeout settings
        http_client: httpx client override
        codec: Snapshot codec (default: compact JSON)
        logger: Logger instance

    Returns:
        StorageAdapter supporting upload, download and authenticate
    """
    config = config or GitHubConfig()
    codec = codec or SnapshotCodec(indent=None)
    client = GitHubContentsClient(
        config,
        transport_config=transport_config,
        http_client=http_client,
        logger=logger
    )

    return StorageAdapter(
        id=AdapterKind.GITHUB.value,
        kind=AdapterKind.GITHUB,
        name="GitHub repository",
        encode=lambda folders, files: encode_base64(folders, files, codec),
        decode=lambda raw: decode_base64(raw, codec),
        upload=client.upload,
        download=client.download,
        authenticate=client.authenticate,
        close=client.close,
        description=f"{config.owner}/{config.repo}@{config.branch}:{config.path}",
        backend=client,
    )
