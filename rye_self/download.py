"""
Release asset resolution and verified downloads.

Downloads happen entirely in memory; nothing on disk is touched until the
payload has been fetched and, when a checksum sidecar exists, verified.
"""

from __future__ import annotations

import hashlib
import http.client
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass

from .common import SelfManageError
from .platform_ops import PlatformOps

logger = logging.getLogger(__name__)

USER_AGENT = "rye-self/0.1"


class DownloadError(SelfManageError):
    """Raised when a download fails for any reason other than a 404."""
    pass


class ResourceNotFound(DownloadError):
    """Raised when the server reports the resource does not exist."""
    pass


class ChecksumMismatch(SelfManageError):
    """Raised when a payload does not match its published checksum."""
    pass


@dataclass(frozen=True)
class ReleaseAsset:
    """
    A published release binary for one platform.

    Attributes:
        arch: CPU architecture (e.g. 'x86_64')
        os: Operating system (e.g. 'linux')
        version: Release version, or 'latest'
        repo: Repository URL publishing the releases
        suffix: Asset suffix ('.gz' or '.exe')
    """
    arch: str
    os: str
    version: str
    repo: str
    suffix: str

    @property
    def name(self) -> str:
        return f"rye-{self.arch}-{self.os}{self.suffix}"

    @property
    def url(self) -> str:
        if self.version == "latest":
            return f"{self.repo}/releases/latest/download/{self.name}"
        return f"{self.repo}/releases/download/{self.version}/{self.name}"

    @property
    def checksum_url(self) -> str:
        return f"{self.url}.sha256"


def resolve_release_asset(version: str | None, ops: PlatformOps, repo: str) -> ReleaseAsset:
    """Resolve the release asset for this platform."""
    return ReleaseAsset(
        arch=ops.arch,
        os=ops.os_name,
        version=version or "latest",
        repo=repo.rstrip("/"),
        suffix=ops.asset_suffix,
    )


def download_url(url: str, timeout: int = 60) -> bytes:
    """
    Perform HTTP GET request.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds

    Returns:
        Response body as bytes

    Raises:
        ResourceNotFound: If the server answers 404
        DownloadError: If the request fails otherwise
    """
    logger.debug(f"Downloading {url}")
    try:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read()
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise ResourceNotFound(f"{url} was not found (404)") from e
        raise DownloadError(f"Failed to fetch {url}: HTTP {e.code}") from e
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e


def download_url_ignore_404(url: str, timeout: int = 60) -> bytes | None:
    """Like download_url, but returns None when the resource does not exist."""
    try:
        return download_url(url, timeout)
    except ResourceNotFound:
        logger.debug(f"{url} not found, ignoring")
        return None


def parse_checksum(text: str) -> str:
    """
    Extract the hex digest from a checksum sidecar.

    Sidecars contain the digest, optionally followed by whitespace and a
    file name (``sha256sum`` format).
    """
    parts = text.strip().split()
    return parts[0].lower() if parts else ""


def check_checksum(content: bytes, checksum: str) -> None:
    """
    Verify that ``content`` hashes to ``checksum``.

    Raises:
        ChecksumMismatch: If the SHA-256 digest differs
    """
    expected = parse_checksum(checksum)
    actual = hashlib.sha256(content).hexdigest()
    if actual != expected:
        raise ChecksumMismatch(
            f"checksum mismatch: expected {expected or '<empty>'}, got {actual}"
        )


def fetch_verified_release(asset: ReleaseAsset, timeout: int = 60) -> bytes:
    """
    Download a release asset and verify it against its sidecar checksum.

    A missing sidecar only produces a warning; any other failure aborts.

    Returns:
        The raw (still encoded) asset bytes
    """
    try:
        data = download_url(asset.url, timeout)
    except DownloadError as e:
        raise DownloadError(
            f"could not download release {asset.version} for this platform: {e.message}"
        ) from e

    sha256 = download_url_ignore_404(asset.checksum_url, timeout)
    if sha256 is None:
        print("Checksum check skipped (no hash available)")
        logger.warning(f"no checksum published for {asset.url}, update is unverified")
        return data

    print("Checking checksum")
    try:
        check_checksum(data, sha256.decode("utf-8", errors="replace"))
    except ChecksumMismatch as e:
        raise ChecksumMismatch(f"hash check of {asset.url} failed: {e.message}") from e
    return data
