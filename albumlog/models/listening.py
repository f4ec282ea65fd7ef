"""Listening-log models: one album per user per day.

A ListeningEntry is stored as a flat hash in the key-value store, so every
field is round-tripped through strings.  :meth:`ListeningEntry.to_hash` and
:meth:`ListeningEntry.from_hash` own that conversion.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from albumlog.models.entities import Album


class ListeningEntry(BaseModel):
    """The album a user listened to on a given date."""

    model_config = ConfigDict(frozen=True)

    username: str
    date: str                   # YYYY-MM-DD
    album_mbid: str
    rating: float = 0.0         # 0-10 inclusive
    favorite_track: str = ""
    notes: str = ""
    created_at: str             # ISO-8601 timestamp
    updated_at: str | None = None

    def to_hash(self) -> dict[str, str]:
        data = {
            "username": self.username,
            "date": self.date,
            "album_mbid": self.album_mbid,
            "rating": repr(self.rating),
            "favorite_track": self.favorite_track,
            "notes": self.notes,
            "created_at": self.created_at,
        }
        if self.updated_at:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_hash(cls, data: dict[str, str]) -> ListeningEntry:
        return cls(
            username=data["username"],
            date=data["date"],
            album_mbid=data["album_mbid"],
            rating=float(data.get("rating") or 0),
            favorite_track=data.get("favorite_track", ""),
            notes=data.get("notes", ""),
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or None,
        )


class ListeningEntryWithAlbum(ListeningEntry):
    """A listening entry joined with its cached album record."""

    album: Album


class CalendarListeningEntry(BaseModel):
    """One day in a user's calendar view."""

    model_config = ConfigDict(frozen=True)

    date: str
    album: Album | None = None
    rating: float | None = None
    favorite_track: str | None = None
    notes: str | None = None
