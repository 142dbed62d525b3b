"""PDF text extraction module."""
import asyncio
import fitz  # PyMuPDF
import re
from pathlib import Path
from typing import Callable, List, Optional
from utils.logger import setup_logger
from ingestion.models import Chapter, Document
from ingestion.cleaner import clean_pdf_text, normalize
from ingestion.errors import ExtractionError
from ingestion.segmenter import ChapterSegmenter, merge_chapter_text
import config

logger = setup_logger(__name__)

ProgressCallback = Callable[[int], None]

OPEN_FAILED = "Could not open this PDF. It may be corrupted, password-protected, or an unsupported format."
NO_PAGES = "This PDF has no pages."
NO_TEXT = (
    "No readable text found in this PDF. It may be a scanned document or "
    "image-only file. Try using OCR software first."
)


class PDFExtractor:
    """Extracts readable text and chapters from PDF bytes."""

    def __init__(
        self,
        segmenter: Optional[ChapterSegmenter] = None,
        line_threshold: float = config.PDF_LINE_THRESHOLD
    ):
        self.segmenter = segmenter or ChapterSegmenter()
        self.line_threshold = line_threshold

    async def extract(
        self,
        data: bytes,
        name: str = "document.pdf",
        on_progress: Optional[ProgressCallback] = None
    ) -> Document:
        """Extract clean text from a PDF without blocking the event loop.

        Args:
            data: Raw PDF bytes
            name: Original filename
            on_progress: Called with percent of pages processed (large files only)

        Returns:
            Document with cleaned text, page count and chapters

        Raises:
            ExtractionError: If the PDF cannot be opened or has no text
        """
        return await asyncio.to_thread(self.extract_bytes, data, name, on_progress)

    def extract_bytes(
        self,
        data: bytes,
        name: str = "document.pdf",
        on_progress: Optional[ProgressCallback] = None
    ) -> Document:
        """Synchronous variant of extract()."""
        logger.info(f"Extracting text from {name}")

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise ExtractionError(OPEN_FAILED) from e

        try:
            if doc.needs_pass:
                raise ExtractionError(OPEN_FAILED)
            if doc.page_count == 0:
                raise ExtractionError(NO_PAGES)

            outline = self._read_outline(doc)
            page_count = doc.page_count
            pdf_meta = doc.metadata or {}

            pages = []
            for page_num in range(page_count):
                pages.append(self._page_text(doc[page_num]))

                # Report progress for large files
                if on_progress and page_count > config.PDF_PROGRESS_MIN_PAGES:
                    on_progress(round((page_num + 1) / page_count * 100))
        finally:
            doc.close()

        text = '\n\n'.join(pages)
        text = clean_pdf_text(text)
        text = normalize(text)

        if len(text) < config.MIN_PDF_TEXT_CHARS:
            raise ExtractionError(NO_TEXT)

        # Prefer the PDF outline, fall back to text heuristics
        chapters = None
        if len(outline) >= 2:
            chapters = build_chapters_from_outline(outline, text)
        if not chapters or len(chapters) < 2:
            chapters = self.segmenter.segment(text)

        title = (pdf_meta.get("title") or "").strip() or Path(name).stem
        word_count = len(text.split())

        logger.info(
            f"Extracted {page_count} pages, {word_count} words, "
            f"{len(chapters) if chapters else 0} chapters"
        )

        return Document(
            text=text,
            title=title,
            source_type="pdf",
            page_count=page_count,
            chapters=chapters,
            metadata={
                'filename': name,
                'word_count': word_count,
                'outline_entries': len(outline)
            }
        )

    def _page_text(self, page) -> str:
        """Rebuild page lines from the vertical position of each text run.

        Args:
            page: PyMuPDF page

        Returns:
            Page text with one newline per visual line
        """
        page_text = ''
        last_y = None

        for block in page.get_text("dict").get("blocks", []):
            if block.get("type") != 0:  # images
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    y = round(span["origin"][1])
                    if last_y is not None and abs(y - last_y) > self.line_threshold:
                        page_text += '\n'
                    elif page_text and not page_text.endswith((' ', '\n')):
                        page_text += ' '
                    page_text += text
                    last_y = y

        return page_text

    def _read_outline(self, doc) -> List[str]:
        """Read bookmark titles from the two shallowest outline levels.

        Args:
            doc: Open PyMuPDF document

        Returns:
            Outline titles in outline order, empty if there is no outline
        """
        try:
            toc = doc.get_toc(simple=True)  # [level, title, page]
        except Exception as e:
            logger.debug(f"No outline available: {e}")
            return []

        return [title.strip() for level, title, _ in toc if level <= 2 and title and title.strip()]


def build_chapters_from_outline(titles: List[str], full_text: str) -> Optional[List[Chapter]]:
    """Map outline titles to positions in the extracted text.

    Each title is located by its first case-insensitive occurrence and the
    text is sliced between consecutive matches, ordered by position. Titles
    that occur more than once or not verbatim are matched best-effort.

    Args:
        titles: Outline titles
        full_text: Normalized document text

    Returns:
        Chapters or None if fewer than two could be placed
    """
    positions = []
    for title in titles:
        match = re.search(re.escape(title), full_text, re.IGNORECASE)
        if match:
            positions.append((match.start(), title))

    # Sort by position in text, not outline order
    positions.sort(key=lambda p: p[0])

    if len(positions) < 2:
        return None

    chapters: List[Chapter] = []
    carry = ''

    first_index = positions[0][0]
    pre_text = full_text[:first_index].strip()
    if first_index > config.OUTLINE_INTRO_MIN_OFFSET and len(pre_text) > config.OUTLINE_INTRO_MIN_CHARS:
        chapters.append(Chapter(title='Introduction', text=pre_text))
    else:
        carry = pre_text

    for i, (start, title) in enumerate(positions):
        end = positions[i + 1][0] if i < len(positions) - 1 else len(full_text)
        body = full_text[start:end].strip()
        if carry:
            body = f"{carry}\n\n{body}" if body else carry
            carry = ''

        if len(body) > config.MIN_OUTLINE_CHAPTER_CHARS:
            chapters.append(Chapter(title=title, text=body))
        elif chapters:
            chapters[-1] = merge_chapter_text(chapters[-1], body)
        else:
            carry = body

    return chapters if len(chapters) >= 2 else None
