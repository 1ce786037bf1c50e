"""Accumulated transcript for one connection."""

from typing import Callable


class TranscriptBuffer:
    """Append-only transcript with whitespace normalization.

    Every fragment is trimmed before it is stored; blank fragments are dropped
    without notifying anyone. Stored fragments are joined by a single newline,
    so the text never starts or ends with whitespace. ``on_append`` receives
    each trimmed fragment (not the cumulative text).
    """

    def __init__(self, on_append: Callable[[str], None] | None = None):
        self._on_append = on_append
        self._fragments: list[str] = []

    def append(self, text: str | None) -> str | None:
        """Store ``text`` and return the cleaned fragment, or None if dropped."""
        if not text:
            return None
        cleaned = text.strip()
        if not cleaned:
            return None
        self._fragments.append(cleaned)
        if self._on_append is not None:
            self._on_append(cleaned)
        return cleaned

    @property
    def text(self) -> str:
        return "\n".join(self._fragments)

    @property
    def fragments(self) -> list[str]:
        return list(self._fragments)

    def clear(self):
        self._fragments.clear()

    def __len__(self) -> int:
        return len(self.text)

    def __bool__(self) -> bool:
        return bool(self._fragments)
