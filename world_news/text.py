"""HTML cleanup for text fields returned by the search API."""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup


def clean_html(raw_value: Optional[str]) -> str:
    """Return ``raw_value`` with tags removed and entities decoded.

    Adjacent tag contents are joined without a separator because the API
    highlights matched terms with ``<b>`` inside words.
    """
    if not raw_value:
        return ""
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text()
    return text.replace("\xa0", " ").strip()
