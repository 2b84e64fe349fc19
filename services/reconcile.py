"""Client-side view of a realtime feed.

A ReconcilingSet holds records keyed by id and merges three sources of truth:
an initial snapshot, optimistic local writes, and confirmed remote
notifications. The same id arriving twice (snapshot plus INSERT, or local
optimistic insert plus its echo) is stored once.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Hashable, Iterable, Iterator, TypeVar

from services.realtime import ChangeNotification, ChangeType

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Source(str, Enum):
    SNAPSHOT = "snapshot"
    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class Entry(Generic[V]):
    value: V
    source: Source
    stamp: int


class ReconcilingSet(Generic[K, V]):
    """Records keyed by id; last writer wins per id.

    Deleted ids are remembered and never re-added, since ids are not reused.
    """

    def __init__(
        self,
        key: Callable[[V], K],
        order_by: Callable[[V], Any] | None = None,
    ):
        self._key = key
        self._order_by = order_by
        self._entries: dict[K, Entry[V]] = {}
        self._deleted: set[K] = set()
        self._clock = 0

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def upsert(self, value: V, source: Source = Source.REMOTE) -> bool:
        """Insert or replace a record. Returns True when the id was new."""
        key = self._key(value)
        if key in self._deleted:
            return False
        is_new = key not in self._entries
        self._entries[key] = Entry(value=value, source=source, stamp=self._tick())
        return is_new

    def remove(self, key: K) -> bool:
        self._deleted.add(key)
        return self._entries.pop(key, None) is not None

    def replace_all(self, values: Iterable[V]) -> None:
        """Reset to a fresh snapshot, keeping local writes not yet confirmed."""
        pending = {
            key: entry
            for key, entry in self._entries.items()
            if entry.source == Source.LOCAL
        }
        self._entries = {}
        for value in values:
            self.upsert(value, Source.SNAPSHOT)
        for key, entry in pending.items():
            if key not in self._entries and key not in self._deleted:
                self._entries[key] = entry

    def apply(self, notification: ChangeNotification, key_field: str = "id") -> bool:
        """Fold a change notification in. Returns True if visible state changed."""
        if notification.event_type == ChangeType.DELETE:
            old = notification.old or {}
            if key_field not in old:
                return False
            return self.remove(old[key_field])

        new = notification.new
        if new is None:
            return False
        key = self._key(new)
        existing = self._entries.get(key)
        if existing is not None and existing.value == new:
            # Duplicate delivery; confirm a local optimistic write
            existing.source = Source.REMOTE
            return False
        if key in self._deleted:
            return False
        self.upsert(new, Source.REMOTE)
        return True

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        return entry.value if entry else None

    def source_of(self, key: K) -> Source | None:
        entry = self._entries.get(key)
        return entry.source if entry else None

    def values(self) -> list[V]:
        values = [entry.value for entry in self._entries.values()]
        if self._order_by is not None:
            values.sort(key=self._order_by)
        return values

    def keys(self) -> list[K]:
        return [self._key(value) for value in self.values()]

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[V]:
        return iter(self.values())
