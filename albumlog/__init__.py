"""albumlog -- daily album-listening log backed by a MusicBrainz read-through cache."""

__version__ = "0.1.0"
