from __future__ import annotations

import re
from typing import Optional

_DOI_RE = re.compile(r"(?P<doi>10\.\d{4,9}/[-._;()/:A-Z0-9<>\[\]]+)", re.IGNORECASE)


def normalize_doi(value: str | None) -> Optional[str]:
    """Extract a bare, lower-cased DOI from a DOI, ``doi:`` string or doi.org URL."""
    text = (value or "").strip()
    if not text:
        return None

    lowered = text.lower()
    for marker in ("doi.org/", "doi:"):
        idx = lowered.find(marker)
        if idx >= 0:
            text = text[idx + len(marker) :]
            break

    text = text.split("?", 1)[0].split("#", 1)[0].strip()
    match = _DOI_RE.search(text)
    if not match:
        return None
    return match.group("doi").strip().lower()


def format_date_parts(parts: list | None) -> Optional[str]:
    """
    Reassemble CrossRef ``date-parts`` (``[year, month?, day?]``) as ``YYYY-MM-DD``.

    Missing month or day default to 1.
    """
    if not parts or not isinstance(parts, list) or not parts[0]:
        return None
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 and parts[1] else 1
        day = int(parts[2]) if len(parts) > 2 and parts[2] else 1
    except (TypeError, ValueError):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"
