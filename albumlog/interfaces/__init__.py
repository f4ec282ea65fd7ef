"""Interface definitions for every external collaborator.

Business logic (the caches and services) only ever sees these abstract
base classes; concrete adapters are constructed in ``albumlog.main`` and
injected.  Tests inject in-memory stores and fake providers instead.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations (albumlog/providers/)
    -------------------------------------------------------------------------
    IKeyValueStore             ->  RedisKeyValueStore, MemoryKeyValueStore
    IMusicMetadataProvider     ->  MusicBrainzClient
    IArtworkStore              ->  FilesystemArtworkStore
"""

from albumlog.interfaces.artwork_store import ARTWORK_EXTENSIONS, IArtworkStore
from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.interfaces.metadata_provider import IMusicMetadataProvider

__all__ = [
    "ARTWORK_EXTENSIONS",
    "IArtworkStore",
    "IKeyValueStore",
    "IMusicMetadataProvider",
]
