"""Strip markup from free text before it is stored (stored-XSS guard)."""

import re
from typing import Dict, Iterable

_SCRIPT_TAGS = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")
_EVENT_HANDLERS = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_PROTOCOL = re.compile(r"javascript\s*:", re.IGNORECASE)
_HTML_DATA_URI = re.compile(r"data\s*:\s*text/html", re.IGNORECASE)


def sanitize_text(value: str, multiline: bool = False) -> str:
    if not value:
        return value

    cleaned = _SCRIPT_TAGS.sub("", value)
    cleaned = _ANY_TAG.sub("", cleaned)
    cleaned = _EVENT_HANDLERS.sub("", cleaned)
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _HTML_DATA_URI.sub("", cleaned)

    if multiline:
        lines = [re.sub(r"[ \t]{3,}", "  ", line) for line in cleaned.split("\n")]
        return "\n".join(lines).strip()
    return re.sub(r"\s{3,}", "  ", cleaned).strip()


def sanitize_fields(data: Dict, multiline_fields: Iterable[str] = ()) -> Dict:
    multiline_fields = set(multiline_fields)
    return {
        key: sanitize_text(value, multiline=key in multiline_fields) if isinstance(value, str) else value
        for key, value in data.items()
    }
