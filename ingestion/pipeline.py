"""Source dispatch and reading plan construction."""
from pathlib import Path
from typing import Callable, List, Optional

from utils.logger import setup_logger
from ingestion.models import (
    ChapterWords, Document, FileSource, PasteSource, ReadingPlan, Source, UrlSource
)
from ingestion.errors import ExtractionError
from ingestion.fetcher import HTMLFetcher
from ingestion.html_extractor import HTMLArticleExtractor
from ingestion.pdf_extractor import PDFExtractor
from ingestion.text_extractor import PlainTextExtractor
from ingestion.sequencer import count_words, to_word_sequence
import config

logger = setup_logger(__name__)

NOT_ENOUGH_TEXT = "Not enough text to read. Try a different article or paste text directly."


async def extract_document(
    source: Source,
    on_progress: Optional[Callable[[int], None]] = None,
    fetcher: Optional[HTMLFetcher] = None
) -> Document:
    """Run the extractor matching the source kind.

    Args:
        source: UrlSource, FileSource or PasteSource
        on_progress: PDF page progress callback (percent)
        fetcher: HTML fetcher override

    Returns:
        Normalized Document

    Raises:
        ExtractionError: With a message suitable for the reader
    """
    if isinstance(source, UrlSource):
        return await HTMLArticleExtractor(fetcher=fetcher).extract(source.url)

    if isinstance(source, FileSource):
        if Path(source.name).suffix.lower() == '.pdf':
            return await PDFExtractor().extract(source.data, source.name, on_progress)
        return PlainTextExtractor().extract_file(source.data, source.name)

    if isinstance(source, PasteSource):
        return PlainTextExtractor().extract_paste(source.text)

    raise TypeError(f"Unsupported source: {type(source).__name__}")


def build_reading_plan(document: Document) -> ReadingPlan:
    """Turn a Document into per-chapter word sequences.

    Chapters with too few words are skipped; when fewer than two remain
    the whole document is read as one chapter.

    Args:
        document: Extracted document

    Returns:
        ReadingPlan for the playback engine

    Raises:
        ExtractionError: If the document has fewer than MIN_SESSION_WORDS words
    """
    chapters: List[ChapterWords] = []
    for chapter in document.chapters or []:
        words = to_word_sequence(chapter.text)
        if count_words(words) >= config.MIN_CHAPTER_WORDS:
            chapters.append(ChapterWords(title=chapter.title, words=words))

    if len(chapters) < 2:
        chapters = [ChapterWords(title=document.title, words=to_word_sequence(document.text))]

    word_count = sum(count_words(c.words) for c in chapters)
    if word_count < config.MIN_SESSION_WORDS:
        raise ExtractionError(NOT_ENOUGH_TEXT)

    logger.debug(f"Reading plan: {len(chapters)} chapters, {word_count} words")

    return ReadingPlan(
        title=document.title,
        chapters=chapters,
        page_count=document.page_count,
        word_count=word_count
    )
