"""Plain text and pasted text extraction."""
from pathlib import Path
from typing import Optional

from utils.logger import setup_logger
from ingestion.models import Document
from ingestion.cleaner import normalize
from ingestion.errors import ExtractionError
from ingestion.segmenter import ChapterSegmenter
import config

logger = setup_logger(__name__)

EMPTY_FILE = (
    "This file appears to be empty or too short. "
    "Make sure the file contains readable text."
)
UNSUPPORTED = (
    "Could not read this file. Supported formats: .txt, .pdf. "
    "Try saving your content as a text file."
)
PASTE_TOO_SHORT = "Please paste at least {n} words of text."


class PlainTextExtractor:
    """Passes text through the normalizer and segmenter."""

    def __init__(self, segmenter: Optional[ChapterSegmenter] = None):
        self.segmenter = segmenter or ChapterSegmenter()

    def extract_file(self, data: bytes, name: str) -> Document:
        """Extract a text file.

        Args:
            data: Raw file bytes, decoded as UTF-8
            name: Original filename

        Returns:
            Normalized Document

        Raises:
            ExtractionError: If the file has too little text
        """
        raw = data.decode('utf-8', errors='replace')
        is_txt = Path(name).suffix.lower() == '.txt'

        if not is_txt and len(raw.strip()) <= config.MIN_OTHER_FILE_CHARS:
            raise ExtractionError(UNSUPPORTED)

        return self._build(raw, title=Path(name).stem, source_type="txt" if is_txt else "file",
                           metadata={'filename': name})

    def extract_paste(self, text: str) -> Document:
        """Extract pasted text (at least MIN_PASTE_WORDS words)."""
        if len((text or '').split()) < config.MIN_PASTE_WORDS:
            raise ExtractionError(PASTE_TOO_SHORT.format(n=config.MIN_PASTE_WORDS))
        return self._build(text, title="Pasted text", source_type="paste", metadata={})

    def _build(self, raw: str, title: str, source_type: str, metadata: dict) -> Document:
        if len(raw.strip()) < config.MIN_FILE_TEXT_CHARS:
            raise ExtractionError(EMPTY_FILE)

        text = normalize(raw)
        if len(text) < config.MIN_FILE_TEXT_CHARS:
            raise ExtractionError(EMPTY_FILE)

        chapters = self.segmenter.segment(text)
        word_count = len(text.split())
        logger.info(f"Read {word_count} words of {source_type} text")

        return Document(
            text=text,
            title=title or "Untitled",
            source_type=source_type,
            chapters=chapters,
            metadata={**metadata, 'word_count': word_count}
        )
