"""Filesystem artwork store.

Downloads cover images with the shared ``httpx.AsyncClient`` and writes
them under a local directory that the web tier serves as static files
(``public/album-art`` by default, served at ``/album-art``).  File names
are ``<release id><extension>``; the extension follows the response
content type and falls back to the URL path, then to ``.jpg``.

A failed download or write is logged and reported as ``None``; the caller
then keeps the external URL.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx

from albumlog.interfaces.artwork_store import IArtworkStore
from albumlog.utils.logging import get_logger

_CONTENT_TYPE_EXTENSIONS: tuple[tuple[str, str], ...] = (
    ("png", ".png"),
    ("webp", ".webp"),
    ("jpeg", ".jpg"),
    ("jpg", ".jpg"),
)


def extension_for(content_type: str, url: str) -> str:
    """Pick a file extension from *content_type*, else from the path of *url*."""
    content_type = content_type.lower()
    for marker, extension in _CONTENT_TYPE_EXTENSIONS:
        if marker in content_type:
            return extension
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    return suffix or ".jpg"


class FilesystemArtworkStore(IArtworkStore):
    """Stores artwork as ``<artwork_dir>/<release_id><ext>``.

    Parameters
    ----------
    http_client:
        Shared client used for downloads.
    artwork_dir:
        Directory the images are written to; created on first save.
    public_prefix:
        URL path prefix under which *artwork_dir* is served.
    user_agent:
        Client-identifier header sent with downloads.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        artwork_dir: str | Path = "public/album-art",
        public_prefix: str = "/album-art",
        user_agent: str | None = None,
    ) -> None:
        self._http = http_client
        self._dir = Path(artwork_dir)
        self._prefix = public_prefix.rstrip("/")
        self._headers = {"User-Agent": user_agent} if user_agent else {}
        self._logger = get_logger(__name__)

    @property
    def artwork_dir(self) -> Path:
        return self._dir

    def _path_for(self, release_id: str, extension: str) -> Path:
        return self._dir / f"{release_id}{extension}"

    def public_url(self, release_id: str, extension: str = ".jpg") -> str:
        return f"{self._prefix}/{release_id}{extension}"

    async def exists(self, release_id: str, extension: str = ".jpg") -> bool:
        return await asyncio.to_thread(self._path_for(release_id, extension).is_file)

    async def save(self, release_id: str, source_url: str) -> str | None:
        try:
            response = await self._http.get(
                source_url, headers=self._headers, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            self._logger.warning(
                "artwork_download_failed", release_id=release_id, url=source_url, error=str(exc)
            )
            return None

        if response.status_code != 200:
            self._logger.warning(
                "artwork_download_http_error",
                release_id=release_id,
                url=source_url,
                status=response.status_code,
            )
            return None

        extension = extension_for(response.headers.get("content-type", ""), source_url)
        path = self._path_for(release_id, extension)
        try:
            await asyncio.to_thread(self._write, path, response.content)
        except OSError as exc:
            self._logger.error(
                "artwork_write_failed", release_id=release_id, path=str(path), error=str(exc)
            )
            return None

        public = self.public_url(release_id, extension)
        self._logger.info("artwork_saved", release_id=release_id, path=public)
        return public

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
