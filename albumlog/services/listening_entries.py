"""Per-user daily listening log.

One entry per user per day, stored as a flat hash at
``listening:<username>:<YYYY-MM-DD>``.  Entries reference albums by
MusicBrainz release id; album details are joined from the entity cache
when a caller asks for them.

The username is an opaque, already-authenticated identifier.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone

import structlog
from pydantic import ValidationError

from albumlog.interfaces.kv_store import IKeyValueStore
from albumlog.models.entities import Album
from albumlog.models.listening import (
    CalendarListeningEntry,
    ListeningEntry,
    ListeningEntryWithAlbum,
)
from albumlog.services.entity_cache import EntityCache
from albumlog.utils.errors import InvalidInputError, StoreUnavailableError
from albumlog.utils.logging import get_logger

LISTENING_PREFIX = "listening:"

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_GLOB_SPECIAL_RE = re.compile(r"([*?\[\]\\])")

MIN_RATING = 0.0
MAX_RATING = 10.0


def _glob_escape(text: str) -> str:
    """Wrap glob metacharacters in ``[...]`` so they match literally."""
    return _GLOB_SPECIAL_RE.sub(r"[\1]", text)


class ListeningEntryStore:
    """Read and write listening entries.

    Parameters
    ----------
    store:
        Shared key-value store handle.
    entity_cache:
        Source of album details for calendar and joined views.
    """

    def __init__(self, store: IKeyValueStore, entity_cache: EntityCache) -> None:
        self._store = store
        self._cache = entity_cache
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @staticmethod
    def _key(username: str, day: str) -> str:
        return f"{LISTENING_PREFIX}{username}:{day}"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_date(text: str) -> bool:
        """True for a ``YYYY-MM-DD`` string naming a real calendar date."""
        if not isinstance(text, str) or not _DATE_RE.fullmatch(text):
            return False
        try:
            date.fromisoformat(text)
        except ValueError:
            return False
        return True

    @staticmethod
    def validate_rating(value: object) -> bool:
        """True for a finite number between 0 and 10 inclusive."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value) and MIN_RATING <= value <= MAX_RATING

    @classmethod
    def is_date_in_future(cls, text: str, today: date | None = None) -> bool:
        if not cls.validate_date(text):
            raise InvalidInputError(f"Invalid date {text!r}; expected YYYY-MM-DD")
        return date.fromisoformat(text) > (today or date.today())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_or_update(
        self,
        username: str,
        day: str,
        album_mbid: str,
        rating: float = 0,
        favorite_track: str = "",
        notes: str = "",
        today: date | None = None,
    ) -> ListeningEntry:
        """Record *album_mbid* as the album *username* listened to on *day*.

        An existing entry for the same day is replaced, keeping its
        original ``created_at``.

        Raises
        ------
        InvalidInputError
            For a blank username or album id, a malformed or future date,
            or a rating outside 0..10.
        """
        if not username:
            raise InvalidInputError("Username is required")
        if not album_mbid:
            raise InvalidInputError("Album MBID is required")
        if not self.validate_date(day):
            raise InvalidInputError(f"Invalid date {day!r}; expected YYYY-MM-DD")
        if self.is_date_in_future(day, today):
            raise InvalidInputError("Cannot log listening entries for future dates")
        if not self.validate_rating(rating):
            raise InvalidInputError("Rating must be a number between 0 and 10")

        existing = await self.get(username, day)
        now = datetime.now(timezone.utc).isoformat()
        entry = ListeningEntry(
            username=username,
            date=day,
            album_mbid=album_mbid,
            rating=rating,
            favorite_track=favorite_track,
            notes=notes,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        await self._store.hash_set(self._key(username, day), entry.to_hash())
        self._logger.info(
            "listening_entry_saved", username=username, date=day, updated=existing is not None
        )
        return entry

    async def delete(self, username: str, day: str) -> bool:
        return await self._store.delete(self._key(username, day))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load(self, key: str) -> ListeningEntry | None:
        data = await self._store.hash_get_all(key)
        if not data:
            return None
        try:
            return ListeningEntry.from_hash(data)
        except (KeyError, ValueError, ValidationError) as exc:
            self._logger.warning("listening_entry_malformed", key=key, error=str(exc))
            return None

    async def _album(self, album_mbid: str) -> Album | None:
        try:
            return await self._cache.get_cached_album(album_mbid)
        except StoreUnavailableError as exc:
            self._logger.warning("album_lookup_failed", album_mbid=album_mbid, error=str(exc))
            return None

    async def get(self, username: str, day: str) -> ListeningEntry | None:
        return await self._load(self._key(username, day))

    async def get_all(self, username: str) -> list[ListeningEntry]:
        """Every entry of *username*, newest first."""
        prefix = f"{LISTENING_PREFIX}{username}:"
        keys = await self._store.list_keys(f"{LISTENING_PREFIX}{_glob_escape(username)}:*")

        entries: list[ListeningEntry] = []
        for key in keys:
            # Skip keys of other users whose names extend this one ("bob:x").
            if not self.validate_date(key[len(prefix):]):
                continue
            entry = await self._load(key)
            if entry is not None:
                entries.append(entry)

        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    async def get_in_range(
        self, username: str, start: str, end: str
    ) -> list[CalendarListeningEntry]:
        """Calendar entries between *start* and *end* inclusive, oldest first.

        The album is ``None`` when it is no longer in the entity cache.
        """
        if not self.validate_date(start) or not self.validate_date(end):
            raise InvalidInputError("Start and end must be YYYY-MM-DD dates")

        calendar: list[CalendarListeningEntry] = []
        for entry in await self.get_all(username):
            if not start <= entry.date <= end:
                continue
            calendar.append(
                CalendarListeningEntry(
                    date=entry.date,
                    album=await self._album(entry.album_mbid),
                    rating=entry.rating,
                    favorite_track=entry.favorite_track,
                    notes=entry.notes,
                )
            )

        calendar.sort(key=lambda c: c.date)
        return calendar

    async def get_with_album(self, username: str, day: str) -> ListeningEntryWithAlbum | None:
        """The entry for *day* joined with its album; ``None`` if either is missing."""
        entry = await self.get(username, day)
        if entry is None:
            return None
        album = await self._album(entry.album_mbid)
        if album is None:
            return None
        return ListeningEntryWithAlbum(**entry.model_dump(), album=album)
