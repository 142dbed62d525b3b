"""Word sequencing for RSVP playback."""
import re
from typing import List, Sequence

PARAGRAPH_MARKER = "¶"

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


def to_word_sequence(text: str) -> List[str]:
    """Convert text into the word list consumed by the playback engine.

    One paragraph marker is placed between consecutive non-empty
    paragraphs, so a marker is never first, last or doubled.

    Args:
        text: Normalized text, paragraphs separated by blank lines

    Returns:
        Ordered tokens: words and paragraph markers
    """
    words: List[str] = []
    if not text:
        return words

    for paragraph in PARAGRAPH_BREAK.split(text):
        # A literal pilcrow in the source would be mistaken for a marker
        paragraph_words = [w for w in paragraph.split() if w != PARAGRAPH_MARKER]
        if not paragraph_words:
            continue
        if words:
            words.append(PARAGRAPH_MARKER)
        words.extend(paragraph_words)

    return words


def is_marker(token: str) -> bool:
    return token == PARAGRAPH_MARKER


def count_words(words: Sequence[str]) -> int:
    """Count real words, ignoring paragraph markers."""
    return sum(1 for word in words if word != PARAGRAPH_MARKER)
