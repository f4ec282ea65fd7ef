"""Abstract base class for local album-artwork storage.

The MusicBrainz client hands every cover-art URL it resolves to an
artwork store, which downloads the image and exposes it under a public
path.  When the save succeeds the local path is preferred over the
external URL.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

ARTWORK_EXTENSIONS: tuple[str, ...] = (".jpg", ".png", ".webp")


class IArtworkStore(ABC):
    """Contract for persisting and locating album artwork by release id."""

    @abstractmethod
    async def save(self, release_id: str, source_url: str) -> str | None:
        """Download *source_url* and store it for *release_id*.

        Returns
        -------
        str or None
            The public path of the stored image, or ``None`` when the
            download or write failed.  Never raises.
        """

    @abstractmethod
    async def exists(self, release_id: str, extension: str = ".jpg") -> bool:
        """Return ``True`` if artwork for *release_id* exists with *extension*."""

    @abstractmethod
    def public_url(self, release_id: str, extension: str = ".jpg") -> str:
        """Return the public path under which the artwork is served."""

    async def find_existing(self, release_id: str) -> str | None:
        """Return the public path of any stored artwork for *release_id*."""
        for extension in ARTWORK_EXTENSIONS:
            if await self.exists(release_id, extension):
                return self.public_url(release_id, extension)
        return None
