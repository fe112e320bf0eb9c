import logging
from typing import Optional

from bs4 import BeautifulSoup

DEFAULT_START_MARKER = "moment.locale('it')"
DEFAULT_END_MARKER = "function gotToBuyPage(pid) {"


def collect_script_text(html: str) -> str:
    """Concatenate the text of every <script> element in document order."""
    soup = BeautifulSoup(html, "html.parser")
    scripts = soup.find_all("script")
    text = "".join(s.string or "" for s in scripts)
    logging.getLogger(__name__).debug(
        "script_text_collected scripts=%s chars=%s", len(scripts), len(text)
    )
    return text


def extract_block(text: str, start_marker: str, end_marker: str) -> Optional[str]:
    """Return the text strictly between ``start_marker`` and the first
    ``end_marker`` that follows it, or None when either is missing."""
    start = text.find(start_marker)
    if start == -1:
        return None
    block_start = start + len(start_marker)
    end = text.find(end_marker, block_start)
    if end == -1 or not start < end:
        return None
    return text[block_start:end]
