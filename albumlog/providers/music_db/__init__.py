"""Music-metadata provider implementations.

MusicBrainzClient resolves searches and ids against the MusicBrainz WS2
API and fetches cover art from the Cover Art Archive.  It is the only
upstream source; every record it resolves is written to the entity cache.
"""

from albumlog.providers.music_db.musicbrainz_client import MusicBrainzClient

__all__ = ["MusicBrainzClient"]
