"""
utils/text_utils.py

Purpose: Text helpers for prompt assembly

- Whitespace normalization
- Bounded truncation with a visible marker
- Keyword extraction and overlap scoring
- Rough token estimation
"""

import re
from typing import List, Set

# Characters per token used for budget estimates
CHARS_PER_TOKEN = 4

TRUNCATION_MARKER = " [...]"

STOP_WORDS: Set[str] = {
    "the", "and", "for", "are", "but", "not", "you", "your", "with", "have",
    "this", "that", "from", "they", "will", "would", "there", "their", "what",
    "about", "which", "when", "where", "who", "how", "can", "could", "does",
    "did", "was", "were", "been", "being", "has", "had", "any", "all", "our",
    "out", "use", "into", "than", "then", "them", "these", "those", "its",
    "also", "just", "like", "more", "some", "such", "only", "very", "want",
    "need", "please", "hello", "thanks", "thank", "get", "got", "let",
}

_WORD_RE = re.compile(r"[a-z0-9]+")


def clean_whitespace(text: str) -> str:
    """Collapses any run of whitespace into a single space."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, max_chars: int, marker: str = TRUNCATION_MARKER) -> str:
    """
    Cuts text to at most ``max_chars`` characters of content.

    The marker is appended only when something was removed, so callers can
    tell a complete source from a shortened one.
    """
    if not text or max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + marker


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def extract_keywords(text: str) -> List[str]:
    """
    Returns the distinct keywords of a query in first-seen order.

    Keywords are lower-cased alphanumeric words of three or more characters
    that are not stop words.
    """
    if not text:
        return []

    seen = set()
    keywords = []
    for word in _WORD_RE.findall(text.lower()):
        if len(word) < 3 or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords


def keyword_overlap(keywords: List[str], text: str) -> float:
    """
    Fraction of ``keywords`` that occur as words in ``text``.

    Returns 0.0 when there are no keywords.
    """
    if not keywords or not text:
        return 0.0
    words = set(_WORD_RE.findall(text.lower()))
    hits = sum(1 for keyword in keywords if keyword in words)
    return hits / len(keywords)
