"""Free-text sanitization for user supplied strings."""

import re

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JAVASCRIPT_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def _strip_once(text: str) -> str:
    text = _ANGLE_BRACKETS.sub("", text)
    text = _JAVASCRIPT_PROTOCOL.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    return text.strip()


def sanitize_input(text: str) -> str:
    """Remove markup and script injection fragments from a string.

    Strips angle brackets, ``javascript:`` protocols and inline event handler
    prefixes such as ``onclick=``, then trims whitespace. Removal can splice
    a new forbidden fragment together (``jajavascript:vascript:``), so the
    pass repeats until the text is stable. The result is therefore idempotent.

    Args:
        text: Raw user input

    Returns:
        Sanitized text
    """
    previous = None
    while previous != text:
        previous = text
        text = _strip_once(text)
    return text
