"""Terminal-safe text output.

Reports contain a few non-ASCII glyphs (the em dash separator, arrows). On
terminals that cannot encode UTF-8 they are replaced with ASCII equivalents
instead of crashing the write.
"""
import sys
import locale


# Unicode to ASCII replacements, longest keys first
ICON_MAP = {
    '✓': '[OK]',
    '✔': '[OK]',
    '✗': '[FAIL]',
    '⚠️': '[WARN]',
    '⚠': '[WARN]',
    '—': '-',
    '–': '-',
    '→': '->',
    '←': '<-',
    '⇒': '=>',
    '…': '...',
    '•': '*',
    '│': '|',
    '─': '-',
    '└': '+',
    '├': '+',
}

UTF8_ENCODINGS = ('utf-8', 'utf8', 'utf_8')


def detect_terminal_encoding(stream=None) -> str:
    """Detect the encoding of an output stream.

    Args:
        stream: Stream to inspect (defaults to sys.stdout)

    Returns:
        Lower-cased encoding name ('utf-8', 'cp1252', 'ascii', ...)
    """
    stream = stream if stream is not None else sys.stdout
    encoding = getattr(stream, 'encoding', None)
    if encoding:
        return encoding.lower()

    encoding = locale.getpreferredencoding(False)
    if encoding:
        return encoding.lower()

    return 'ascii'


def is_utf8_capable(stream=None) -> bool:
    """Check if a stream can take UTF-8 text."""
    return detect_terminal_encoding(stream) in UTF8_ENCODINGS


def downgrade_to_ascii(text: str) -> str:
    """Replace every known glyph with its ASCII equivalent."""
    for glyph, replacement in ICON_MAP.items():
        text = text.replace(glyph, replacement)
    return text


def sanitize_for_terminal(text: str, stream=None) -> str:
    """Replace Unicode glyphs with ASCII if the stream does not support UTF-8.

    Args:
        text: Text potentially containing Unicode glyphs
        stream: Target stream (defaults to sys.stdout)

    Returns:
        Text safe for the stream
    """
    if is_utf8_capable(stream):
        return text
    return downgrade_to_ascii(text)
