"""Text normalization and the run-scoped source file cache.

Model names that only appear inside comments or string literals are weak,
misleading evidence. Detectors therefore match against a "clean" copy of each
file with those regions blanked out, while schema/migration detectors keep
access to the raw text.
"""
import re
import threading
from pathlib import Path
from typing import Dict, Union

from .models import SourceFile
from ..utils.logger import log_warning


# Applied in order; each match collapses to a single space
COMMENT_PATTERNS = [
    re.compile(r"/\*[\s\S]*?\*/"),           # Block comments
    re.compile(r"//.*$", re.MULTILINE),      # Line comments
    re.compile(r"<!--[\s\S]*?-->"),          # Markup comments
    re.compile(r"#.*$", re.MULTILINE),       # Shell comments, even in JS files
]

LITERAL_PATTERNS = [
    re.compile(r"'[^']*'"),                  # Single-quoted strings
    re.compile(r'"[^"]*"'),                  # Double-quoted strings
    re.compile(r"`[^`]*`"),                  # Template literals
]


def _blank(match: re.Match) -> str:
    # Keep the newlines a match spanned so line structure survives
    return " " + "\n" * match.group(0).count("\n")


def strip_comments(text: str) -> str:
    """Blank out comments, keeping string and template literals."""
    for pattern in COMMENT_PATTERNS:
        text = pattern.sub(_blank, text)
    return text


def normalize_source(text: str) -> str:
    """Blank out comments and string/template literals.

    Args:
        text: Raw file content

    Returns:
        Clean content with every suppressed region replaced by one space
    """
    text = strip_comments(text)
    for pattern in LITERAL_PATTERNS:
        text = pattern.sub(_blank, text)
    return text


class SourceCache:
    """Read-through cache of (raw, clean) file content, one entry per path.

    The cache lives for one analysis run and is never invalidated: every
    model analysis after the first reuses the same read. A per-path lock
    guarantees each file is read and normalized exactly once even when
    lookups happen from several threads.
    """

    def __init__(self):
        self._entries: Dict[str, SourceFile] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.reads = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path) -> bool:
        return self._key(path) in self._entries

    @staticmethod
    def _key(path: Union[str, Path]) -> str:
        return str(Path(path).resolve())

    def get(self, path: Union[str, Path]) -> SourceFile:
        """Return the cached SourceFile for a path, reading it on first use.

        Unreadable files (permission errors, files deleted mid-scan) are
        reported and cached as empty content.

        Args:
            path: File path (relative paths are resolved)

        Returns:
            SourceFile with raw, clean and comment-free views
        """
        key = self._key(path)
        entry = self._entries.get(key)
        if entry is not None:
            return entry

        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())

        with lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._load(Path(key))
                self._entries[key] = entry
        return entry

    def _load(self, path: Path) -> SourceFile:
        with self._guard:
            self.reads += 1
        try:
            raw = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log_warning("SourceCache", f"Could not read {path}: {e}")
            return SourceFile(path=path, raw="", clean="", code="", readable=False)

        return SourceFile(
            path=path,
            raw=raw,
            clean=normalize_source(raw),
            code=strip_comments(raw),
        )
