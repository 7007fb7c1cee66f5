"""
Text Utilities

Helper functions for text processing and cleanup.
"""

import hashlib
import re
import warnings
from typing import List

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

_SENTENCE_RE = re.compile(r'[^.!?]+(?:[.!?]+|$)')


def remove_source_references(text: str, source_domain: str) -> str:
    """
    Remove all references to a source domain from text.

    Subdomains are reduced to the registrable domain ("m.aliexpress.com"
    also removes "aliexpress.com" and the bare word "aliexpress"). Brand
    labels of two characters or fewer are left alone so words like "M"
    survive.

    Args:
        text: Text that may contain source references
        source_domain: Host to remove (e.g., "m.aliexpress.com")

    Returns:
        Cleaned text without source references
    """
    if not text or not source_domain:
        return text

    labels = [label for label in source_domain.lower().strip('.').split('.') if label]
    if not labels:
        return text
    registrable = '.'.join(labels[-2:])
    brand = labels[-2] if len(labels) >= 2 else labels[0]

    # URLs on the source site, subdomains included
    text = re.sub(rf'https?://[^\s]*{re.escape(registrable)}[^\s]*', '', text, flags=re.IGNORECASE)

    # Bare mentions of the domain or any of its subdomains
    text = re.sub(rf'\b(?:[\w-]+\.)*{re.escape(registrable)}\b', '', text, flags=re.IGNORECASE)

    if len(brand) > 2:
        text = re.sub(rf'\b{re.escape(brand)}\b', '', text, flags=re.IGNORECASE)

    # Clean up extra whitespace, keeping line structure
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r' *\n *', '\n', text)

    return text.strip()


def strip_markup(text: str) -> str:
    """
    Convert an HTML fragment to plain text.

    Line breaks become newlines and closing paragraphs become blank lines,
    so paragraph structure survives the tag removal. Entities are decoded.
    """
    if not text:
        return ""

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = re.sub(r'<br\s*/?>', '\n', text, flags=re.IGNORECASE)
    text = re.sub(r'</p\s*>', '\n\n', text, flags=re.IGNORECASE)

    if '<' not in text and '&' not in text:
        return text

    with warnings.catch_warnings():
        warnings.simplefilter('ignore', MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(text, 'lxml')
    return soup.get_text()


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return re.sub(r'\s+', ' ', text or '').strip()


def to_title_case(text: str) -> str:
    """
    Capitalize the first letter of each word, lowercase the rest.

    Unlike str.title(), apostrophes do not start a new word
    ("don't" -> "Don't").

    Example:
        >>> to_title_case("BABY girl's ROMPER")
        "Baby Girl's Romper"
    """
    return re.sub(r'\w\S*', lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def truncate_at_word(text: str, max_length: int, marker: str = '...') -> str:
    """
    Truncate text to max_length including the marker.

    Cuts at the last whitespace before the limit; a single overlong word
    is cut hard.
    """
    if len(text) <= max_length:
        return text

    limit = max(max_length - len(marker), 0)
    last_space = text.rfind(' ', 0, limit + 1)
    if last_space > 0:
        cut = text[:last_space]
    else:
        cut = text[:limit]
    return cut.rstrip() + marker


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentences, keeping terminal punctuation.

    Trailing text without punctuation is kept as a final sentence.
    """
    return [s for s in _SENTENCE_RE.findall(text or '') if s.strip()]


def short_hash(value: str, length: int, algorithm: str = 'sha256') -> str:
    """Return the first `length` hex characters of the digest of value."""
    digest = hashlib.new(algorithm, value.encode('utf-8')).hexdigest()
    return digest[:length]
