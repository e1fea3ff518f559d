"""Rich Console that knows whether it may print emoji."""
from rich.console import Console

from .logger import is_utf8_capable, sanitize_for_terminal


class SafeConsole(Console):
    """Rich Console whose status icons degrade to ASCII tags.

    Every icon the CLI prints goes through icon(), so only that seam needs
    to know about the terminal's encoding. All constructor arguments are
    passed through to Rich.
    """

    def __init__(self, *args, **kwargs):
        self._needs_sanitization = not is_utf8_capable()
        super().__init__(*args, **kwargs)

    def icon(self, glyph: str) -> str:
        """Return a status icon, or its ASCII tag on legacy terminals."""
        if self._needs_sanitization:
            return sanitize_for_terminal(glyph)
        return glyph
