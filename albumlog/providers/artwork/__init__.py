"""Artwork store providers."""

from albumlog.providers.artwork.filesystem_store import FilesystemArtworkStore

__all__ = ["FilesystemArtworkStore"]
