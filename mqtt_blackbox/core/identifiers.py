"""Randomized client identifiers for per-run broker sessions."""

import random
import string
from collections import deque

__all__ = ["ClientIdSource", "SUFFIX_LENGTH"]

SUFFIX_LENGTH = 5
_LETTERS = string.ascii_lowercase + string.ascii_uppercase


class ClientIdSource:
    """Issue client identifiers that never collide between recent runs.

    Every run gets a fresh suffix so that overlapping or successive runs do
    not take over each other's broker session. A suffix is never handed out
    twice within the last ``history`` draws.

    Not thread-safe; share one instance per event loop.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        suffix_length: int = SUFFIX_LENGTH,
        history: int = 1024,
    ) -> None:
        """Initialize the source.

        Args:
            rng: Random generator; pass a seeded one for reproducible ids.
            suffix_length: Number of letters in a suffix.
            history: Number of recent suffixes guarded against reuse.
        """
        self._rng = rng or random.Random()
        self._suffix_length = suffix_length
        self._recent: deque[str] = deque(maxlen=history)
        self._recent_set: set[str] = set()

    def suffix(self) -> str:
        """Draw a suffix not issued among the recent ones."""
        while True:
            candidate = "".join(self._rng.choices(_LETTERS, k=self._suffix_length))
            if candidate not in self._recent_set:
                break

        if len(self._recent) == self._recent.maxlen:
            self._recent_set.discard(self._recent[0])
        self._recent.append(candidate)
        self._recent_set.add(candidate)
        return candidate

    def client_ids(self, prefix: str) -> tuple[str, str]:
        """Return the (publisher, subscriber) identifiers of one run."""
        suffix = self.suffix()
        return f"{prefix}-p-{suffix}", f"{prefix}-s-{suffix}"
