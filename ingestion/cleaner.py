"""Text cleaning utilities.

Only extraction noise is removed. Words are never rewritten: every step
either deletes structural characters (hyphens at line wraps, bullets,
footnote markers, citations, URLs, trailing reference sections) or turns
a broken line into a single join space.

Example:
    INPUT (noisy PDF text):
        "The inter-\\nnational community has\\nrecognized [1] that climate\\n"
        "change (Smith et al., 2021) poses\\n\\n\\n\\n• significant risks\\n"
        "— to biodiversity.\\nSee https://example.com for more.\\n\\n"
        "References\\nSmith, J. (2021). Climate..."

    OUTPUT:
        "The international community has recognized that climate change poses\\n\\n"
        "significant risks to biodiversity.\\nSee for more."
"""
import re
from collections import Counter
from typing import Optional

MAX_PASSES = 10

HYPHEN_WRAP = re.compile(r'(\w)-[ \t]*\n\s*(\w)')
BROKEN_LINE = re.compile(r'([^\n.!?:;])[ \t]*\n(?![ \t]*\n)[ \t]*([a-z])')
EXCESS_NEWLINES = re.compile(r'\n{3,}')
BULLET = re.compile(r'^[ \t]*(?:[•\-–—*▪▸►○●][ \t]*)+', re.MULTILINE)
BRACKET_FOOTNOTE = re.compile(r'\[\d+(?:[,\-–]\d+)*\]')
PAREN_FOOTNOTE = re.compile(r'\((\d{1,2})\)(?=\s|$|[.,;])')
CITATION = re.compile(
    r'\([A-Z][a-zA-Z\s&.,;]+(?:et\s+al\.?)?\s*,?\s*\d{4}[a-z]?'
    r'(?:\s*;\s*[A-Z][a-zA-Z\s&.,]+(?:et\s+al\.?)?\s*,?\s*\d{4}[a-z]?)*\)'
)
HTTP_URL = re.compile(r'https?://[^\s)>\]]+', re.IGNORECASE)
WWW_URL = re.compile(r'www\.[^\s)>\]]+', re.IGNORECASE)
REFERENCES = re.compile(
    r'\n\s*(?:References|Bibliography|Works\s+Cited|Literature\s+Cited)[ \t]*(?:\n.*)?\Z',
    re.IGNORECASE | re.DOTALL
)

PAGE_NUMBER_LINE = re.compile(r'^[ \t]*\d{1,4}[ \t]*$', re.MULTILINE)
PAGE_OF_LINE = re.compile(r'^[ \t]*page[ \t]+\d+(?:[ \t]+of[ \t]+\d+)?[ \t]*$', re.MULTILINE | re.IGNORECASE)
DASHED_PAGE_LINE = re.compile(r'^[ \t]*-[ \t]*\d+[ \t]*-[ \t]*$', re.MULTILINE)
REPEATED_LINE_MAX = 60
REPEATED_LINE_MIN_COUNT = 3


def normalize(text: Optional[str]) -> str:
    """Clean extracted text for RSVP reading.

    The fixed-order pipeline is re-applied until the text stops changing,
    so normalizing twice gives the same result as normalizing once.

    Args:
        text: Raw extracted text

    Returns:
        Cleaned text with paragraphs separated by blank lines, or "" for
        non-string input
    """
    if not text or not isinstance(text, str):
        return ''

    for _ in range(MAX_PASSES):
        cleaned = _normalize_pass(text)
        if cleaned == text:
            break
        text = cleaned

    return text


def _normalize_pass(t: str) -> str:
    # Fix hyphenated line breaks: "inter-\nnational" -> "international"
    t = HYPHEN_WRAP.sub(r'\1\2', t)

    # Join broken lines inside paragraphs, keep blank-line paragraph breaks
    t = BROKEN_LINE.sub(r'\1 \2', t)

    t = EXCESS_NEWLINES.sub('\n\n', t)

    t = BULLET.sub('', t)

    # [1], [1,2], [1-3] and small parenthesized numbers
    t = BRACKET_FOOTNOTE.sub('', t)
    t = PAREN_FOOTNOTE.sub('', t)

    # (Smith et al., 2021), (Smith & Jones, 2019; Lee, 2020)
    t = CITATION.sub('', t)

    t = HTTP_URL.sub('', t)
    t = WWW_URL.sub('', t)

    t = REFERENCES.sub('', t)

    return normalize_whitespace(t)


def normalize_whitespace(text: str) -> str:
    """Collapse spaces, trim every line and collapse blank lines.

    Args:
        text: Input text

    Returns:
        Text with canonical whitespace
    """
    text = re.sub(r'[ \t]+', ' ', text)

    # Remove leading/trailing whitespace from each line
    lines = [line.strip() for line in text.split('\n')]
    text = '\n'.join(lines)

    text = EXCESS_NEWLINES.sub('\n\n', text)
    return text.strip()


def clean_pdf_text(text: str) -> str:
    """Remove PDF-specific noise before generic normalization.

    Drops page-number lines, "Page N of M" footers and running headers or
    footers (short lines repeated at least three times), then rejoins
    hyphenated wraps.

    Args:
        text: Text reconstructed from PDF pages

    Returns:
        Cleaned text
    """
    text = PAGE_NUMBER_LINE.sub('', text)
    text = PAGE_OF_LINE.sub('', text)
    text = DASHED_PAGE_LINE.sub('', text)

    text = remove_repeated_lines(text)

    text = HYPHEN_WRAP.sub(r'\1\2', text)
    return normalize_whitespace(text)


def remove_repeated_lines(text: str) -> str:
    """Remove running headers and footers.

    Args:
        text: Full document text

    Returns:
        Text without short lines that repeat across the document
    """
    lines = text.split('\n')
    counts = Counter(
        line.strip() for line in lines
        if 0 < len(line.strip()) < REPEATED_LINE_MAX
    )
    repeated = {line for line, count in counts.items() if count >= REPEATED_LINE_MIN_COUNT}

    if not repeated:
        return text

    return '\n'.join(line for line in lines if line.strip() not in repeated)
