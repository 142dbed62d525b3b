"""Chapter and section detection module."""
import re
from typing import List, Optional, Pattern
from utils.logger import setup_logger
from ingestion.models import Chapter
import config

logger = setup_logger(__name__)

_NUMBER_WORDS = (
    "one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|thirteen|"
    "fourteen|fifteen|sixteen|seventeen|eighteen|nineteen|twenty"
)

# Tried in order; the first pattern producing at least two chapters wins.
CHAPTER_PATTERNS = [
    # "Chapter 1", "Chapter One", "CHAPTER 1: Title", "Ch. 3"
    ("chapter", re.compile(rf'^(?:chapter|ch\.?)\s+(?:\d+|{_NUMBER_WORDS})\b[\s:.\-—]*.*', re.IGNORECASE)),
    # "Part 1", "Part One", "PART I"
    ("part", re.compile(r'^part\s+(?:\d+|[ivxlc]+|one|two|three|four|five|six|seven|eight|nine|ten)\b[\s:.\-—]*.*',
                        re.IGNORECASE)),
    ("section", re.compile(r'^section\s+\d+\b[\s:.\-—]*.*', re.IGNORECASE)),
    # "1. Title" numbered headings
    ("numbered", re.compile(r'^\d{1,3}\.\s+[A-Z].{2,60}$')),
]

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')


class ChapterSegmenter:
    """Splits normalized text into chapters for navigation."""

    def __init__(
        self,
        chunk_size: int = config.CHUNK_SIZE_WORDS,
        chunk_trigger: int = config.CHUNK_TRIGGER_WORDS
    ):
        """Initialize segmenter.

        Args:
            chunk_size: Maximum words per chunk when no headings are found
            chunk_trigger: Minimum document words before chunking kicks in
        """
        self.chunk_size = chunk_size
        self.chunk_trigger = chunk_trigger

    def segment(self, text: str) -> Optional[List[Chapter]]:
        """Detect chapters in text.

        Args:
            text: Normalized document text

        Returns:
            At least two chapters in source order, or None when the
            document should be read as a single chapter
        """
        if not text:
            return None

        for label, pattern in CHAPTER_PATTERNS:
            chapters = self._split_by_pattern(text, pattern)
            if chapters:
                logger.debug(f"Found {len(chapters)} chapters using {label} headings")
                return chapters

        word_count = len(text.split())
        if word_count > self.chunk_trigger:
            chapters = self._split_into_chunks(text)
            if chapters:
                logger.debug(f"Split {word_count} words into {len(chapters)} sections")
            return chapters

        return None

    def _split_by_pattern(self, text: str, pattern: Pattern) -> Optional[List[Chapter]]:
        """Split text at lines matching a heading pattern.

        Args:
            text: Full document text
            pattern: Heading pattern

        Returns:
            Chapters or None if fewer than two result
        """
        lines = text.split('\n')
        matches = []

        for line_index, line in enumerate(lines):
            line = line.strip()
            if pattern.match(line):
                matches.append((line[:config.CHAPTER_TITLE_MAX], line_index))

        if len(matches) < 2:
            return None

        chapters: List[Chapter] = []
        carry = ''

        # Text before the first heading
        pre_text = '\n'.join(lines[:matches[0][1]]).strip()
        if len(pre_text) > config.INTRO_MIN_CHARS:
            chapters.append(Chapter(title='Introduction', text=pre_text))
        else:
            carry = pre_text

        for i, (title, start_line) in enumerate(matches):
            end_line = matches[i + 1][1] if i < len(matches) - 1 else len(lines)
            body = '\n'.join(lines[start_line:end_line]).strip()
            if carry:
                body = f"{carry}\n\n{body}"
                carry = ''

            if len(body) > config.MIN_CHAPTER_CHARS:
                chapters.append(Chapter(title=title, text=body))
            elif chapters:
                chapters[-1] = merge_chapter_text(chapters[-1], body)
            else:
                carry = body

        return chapters if len(chapters) >= 2 else None

    def _split_into_chunks(self, text: str) -> Optional[List[Chapter]]:
        """Split a long chapterless text at paragraph boundaries.

        Args:
            text: Full document text

        Returns:
            "Section N" chapters or None if fewer than two result
        """
        chapters: List[Chapter] = []
        current_chunk = []
        current_words = 0

        for para in PARAGRAPH_BREAK.split(text):
            para = para.strip()
            if not para:
                continue
            para_words = len(para.split())

            # If adding this paragraph exceeds chunk size, finalize current chunk
            if current_words > 0 and current_words + para_words > self.chunk_size:
                chapters.append(Chapter(
                    title=f"Section {len(chapters) + 1}",
                    text='\n\n'.join(current_chunk)
                ))
                current_chunk = []
                current_words = 0

            current_chunk.append(para)
            current_words += para_words

        # Add final chunk
        if current_chunk:
            chunk_text = '\n\n'.join(current_chunk)
            if len(chunk_text) > config.MIN_CHAPTER_CHARS or not chapters:
                chapters.append(Chapter(title=f"Section {len(chapters) + 1}", text=chunk_text))
            else:
                chapters[-1] = merge_chapter_text(chapters[-1], chunk_text)

        return chapters if len(chapters) >= 2 else None


def merge_chapter_text(chapter: Chapter, text: str) -> Chapter:
    """Append a too-short slice to the chapter before it."""
    if not text:
        return chapter
    return Chapter(title=chapter.title, text=f"{chapter.text}\n\n{text}")


def detect_chapters(text: str) -> Optional[List[Chapter]]:
    """Segment text with default settings."""
    return ChapterSegmenter().segment(text)
