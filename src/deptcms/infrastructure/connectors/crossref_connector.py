from __future__ import annotations

import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from deptcms.domain.paper_identity import normalize_doi

DEFAULT_CROSSREF_URL = "https://api.crossref.org"


class CrossrefConnector:
    """Read-only CrossRef works lookup by DOI."""

    def __init__(
        self,
        *,
        timeout_s: float = 15.0,
        base_url: Optional[str] = None,
        mailto: Optional[str] = None,
    ):
        self.timeout_s = timeout_s
        base_url = base_url or os.getenv("DEPTCMS_CROSSREF_URL", DEFAULT_CROSSREF_URL)
        self.base_url = base_url.rstrip("/")
        mailto = mailto or os.getenv("DEPTCMS_CROSSREF_MAILTO")
        user_agent = "deptcms/1.0"
        if mailto:
            user_agent = f"{user_agent} (mailto:{mailto})"
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}

    def get_work(self, doi: str) -> Optional[Dict[str, Any]]:
        """
        Return the ``message`` object of ``GET /works/{doi}``.

        ``None`` when the DOI is malformed or unknown to CrossRef; other HTTP
        and network errors propagate from ``requests``.
        """
        resolved = normalize_doi(doi)
        if not resolved:
            return None
        url = f"{self.base_url}/works/{quote(resolved, safe='/')}"
        response = requests.get(url, headers=self._headers, timeout=self.timeout_s)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return None
        message = payload.get("message")
        return message if isinstance(message, dict) else None
