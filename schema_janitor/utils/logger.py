"""Warnings and status icons that survive non-UTF-8 terminals.

Audit output leans on emoji for risk levels; on a legacy code page those
glyphs are swapped for short ASCII tags instead of raising
UnicodeEncodeError halfway through a report.
"""
import locale
import sys


# Every glyph the CLI prints, with its ASCII stand-in
ICON_MAP = {
    '✅': '[SAFE]',
    '🟢': '[OK]',
    '🟡': '[WARN]',
    '🟠': '[RISK]',
    '❌': '[UNUSED]',
    '⚠️': '[WARN]',
    '🚨': '[DANGER]',
    '🔗': '[rel]',
    '📊': '[stats]',
    '💡': '[tip]',
    '💾': '[save]',
    '□': '[ ]',
}


def detect_terminal_encoding() -> str:
    """Encoding of stdout, falling back to the locale's preferred one."""
    encoding = getattr(sys.stdout, 'encoding', None) or locale.getpreferredencoding(False)
    return (encoding or 'ascii').lower()


def is_utf8_capable() -> bool:
    return detect_terminal_encoding().replace('-', '').replace('_', '') == 'utf8'


def sanitize_for_terminal(text: str) -> str:
    """Replace icons with ASCII tags unless the terminal speaks UTF-8.

    Args:
        text: Text potentially containing icons

    Returns:
        Text safe to write to the current terminal
    """
    if is_utf8_capable():
        return text

    # Longest keys first so '⚠️' wins over a bare variation selector
    for glyph in sorted(ICON_MAP, key=len, reverse=True):
        text = text.replace(glyph, ICON_MAP[glyph])
    return text


def safe_print(message: str, file=None) -> None:
    """print() a single message after icon sanitization."""
    print(sanitize_for_terminal(message), file=file)


def log_warning(component: str, message: str) -> None:
    """Report a recoverable problem on stderr.

    Used for per-file failures that must not stop a scan, e.g. a file that
    disappears between discovery and reading.

    Args:
        component: Short name of the reporting component (e.g. 'SourceCache')
        message: Human-readable description
    """
    safe_print(f"[{component}] Warning: {message}", file=sys.stderr)
