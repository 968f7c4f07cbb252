"""Event-type ignore list."""

from collections.abc import Iterable


class IgnoreFilter:
    """Drops events whose type is on a fixed ignore list.

    The set is frozen at construction, so lookups never change it.
    """

    def __init__(self, event_types: Iterable[str] = ()):
        self._ignored = frozenset(name.strip() for name in event_types if name and name.strip())

    @classmethod
    def from_csv(cls, value: str | None) -> "IgnoreFilter":
        """Build from a comma-separated list such as ``"heartbeat, debug"``."""
        return cls((value or "").split(","))

    def should_ignore(self, event_type: str) -> bool:
        return event_type in self._ignored

    @property
    def ignored(self) -> frozenset[str]:
        return self._ignored

    def __len__(self) -> int:
        return len(self._ignored)
