from __future__ import annotations

import re

_ATTR_RE = re.compile(r'(^|\s)([a-z\d_-]+)="([^"]*)"', re.IGNORECASE)
_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")


class TemplateParseError(ValueError):
    pass


def parse_attrs(text: str) -> dict[str, str]:
    """
    Parse `name="value"` pairs of a tag into an ordered dict.

    A repeated name keeps its first position and its last value. Blank text
    (whitespace and an optional self-closing slash) yields an empty dict,
    anything else without a single attribute is an error.
    """
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(text or ""):
        attrs[m.group(2)] = m.group(3)
    if not attrs and (text or "").strip().rstrip("/").strip():
        raise TemplateParseError(f"Can NOT parse attributes from {text!r}")
    return attrs


def string_attrs(attrs: dict[str, str]) -> str:
    return " ".join(f'{name}="{value}"' for name, value in attrs.items())


def csv_split(text: str, num: int | None = None, delimiter: str = ",", enclosure: str = '"') -> list[str]:
    """
    Split comma-separated legacy options.

    Values enclosed in double quotes may contain the delimiter; the enclosure
    is removed. With `num`, at most `num` parts are returned and the surplus is
    joined back into the last one.
    """
    if enclosure not in text:
        if num is None or num <= 0:
            return text.split(delimiter)
        return text.split(delimiter, num - 1)

    raw = text.split(delimiter)
    parts: list[str] = []
    i = 0
    while i < len(raw):
        part = raw[i]
        if part.startswith(enclosure):
            while i + 1 < len(raw) and (len(part) < 2 or not part.endswith(enclosure)):
                i += 1
                part += delimiter + raw[i]
            part = part[1:-1] if len(part) >= 2 and part.endswith(enclosure) else part[1:]
        parts.append(part)
        i += 1

    if num is not None and 0 < num < len(parts):
        parts = parts[: num - 1] + [delimiter.join(parts[num - 1 :])]
    return parts


def php_int(value: str | None) -> int:
    """Leading integer of a string, 0 if there is none ("3em" -> 3, "All" -> 0)."""
    m = _INT_PREFIX_RE.match(value or "")
    return int(m.group(1)) if m else 0


def is_empty(value: str | None) -> bool:
    """Attribute values considered unset by legacy templates: missing, "" or "0"."""
    return value is None or value == "" or value == "0"
