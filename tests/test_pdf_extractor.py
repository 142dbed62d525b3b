"""Test PDF extraction."""
import asyncio

import fitz
import pytest
from ingestion.errors import ExtractionError
from ingestion.pdf_extractor import PDFExtractor, build_chapters_from_outline


def make_pdf(pages, toc=None, title=None, **save_options):
    """Build PDF bytes with one text block per page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    if toc:
        doc.set_toc(toc)
    if title:
        doc.set_metadata({"title": title})
    data = doc.tobytes(**save_options)
    doc.close()
    return data


CHAPTER_ONE = (
    "Chapter One\n"
    "It was a bright cold day in April and the clocks\n"
    "were striking thirteen in the city."
)
CHAPTER_TWO = (
    "Chapter Two\n"
    "The hallway smelt of boiled cabbage and old rag\n"
    "mats at one end of it."
)


def test_extract_text_and_lines():
    """Test line reconstruction and cleanup."""
    document = PDFExtractor().extract_bytes(make_pdf([CHAPTER_ONE]), "sample.pdf")

    assert document.source_type == "pdf"
    assert document.page_count == 1
    assert document.title == "sample"
    assert "the clocks were striking thirteen" in document.text
    assert document.text.startswith("Chapter One\nIt was")


def test_metadata_title():
    """Test that the PDF title wins over the filename."""
    document = PDFExtractor().extract_bytes(make_pdf([CHAPTER_ONE], title="Nineteen"), "x.pdf")
    assert document.title == "Nineteen"


def test_outline_chapters():
    """Test chapters from the PDF outline."""
    data = make_pdf(
        [CHAPTER_ONE, CHAPTER_TWO],
        toc=[[1, "Chapter One", 1], [1, "Chapter Two", 2]]
    )

    document = PDFExtractor().extract_bytes(data, "book.pdf")

    assert [c.title for c in document.chapters] == ["Chapter One", "Chapter Two"]
    assert "clocks" in document.chapters[0].text
    assert "cabbage" in document.chapters[1].text
    assert document.metadata["outline_entries"] == 2


def test_heading_fallback_without_outline():
    """Test that the text segmenter runs when there is no outline."""
    pages = [
        "Chapter 1\nThe first chapter has enough text to count.",
        "Chapter 2\nThe second chapter has enough text as well.",
    ]

    document = PDFExtractor().extract_bytes(make_pdf(pages), "book.pdf")

    assert [c.title for c in document.chapters] == ["Chapter 1", "Chapter 2"]


def test_page_numbers_removed():
    """Test that page number lines are dropped."""
    pages = [f"Some words on page {i} of the story here.\n{i}" for i in range(1, 4)]

    document = PDFExtractor().extract_bytes(make_pdf(pages), "numbers.pdf")

    for line in document.text.split("\n"):
        assert not line.strip().isdigit()


def test_running_header_removed():
    """Test that a header repeated on every page is dropped."""
    pages = [f"My Book\nThe body of part {i} reads differently." for i in range(1, 5)]

    document = PDFExtractor().extract_bytes(make_pdf(pages), "header.pdf")

    assert "My Book" not in document.text
    assert "part 4 reads differently" in document.text


def test_progress_for_large_files():
    """Test progress callbacks above 20 pages."""
    pages = [f"Body text {i} for this page of the document." for i in range(25)]
    progress = []

    PDFExtractor().extract_bytes(make_pdf(pages), "long.pdf", on_progress=progress.append)

    assert len(progress) == 25
    assert progress[-1] == 100
    assert progress == sorted(progress)


def test_no_progress_for_small_files():
    """Test that small files do not report progress."""
    progress = []
    pages = [f"Short page {i} with a handful of words." for i in range(3)]
    PDFExtractor().extract_bytes(make_pdf(pages), "short.pdf", on_progress=progress.append)
    assert progress == []


def test_corrupt_pdf():
    """Test bytes that are not a PDF."""
    with pytest.raises(ExtractionError, match="Could not open this PDF"):
        PDFExtractor().extract_bytes(b"this is not a pdf", "broken.pdf")


def test_encrypted_pdf():
    """Test password-protected PDFs."""
    data = make_pdf(
        [CHAPTER_ONE],
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner",
        user_pw="secret"
    )
    with pytest.raises(ExtractionError, match="password-protected"):
        PDFExtractor().extract_bytes(data, "locked.pdf")


def test_image_only_pdf():
    """Test pages without text."""
    with pytest.raises(ExtractionError, match="No readable text"):
        PDFExtractor().extract_bytes(make_pdf(["", ""]), "scan.pdf")


def test_async_extract():
    """Test the non-blocking entry point."""
    document = asyncio.run(PDFExtractor().extract(make_pdf([CHAPTER_ONE]), "sample.pdf"))
    assert "thirteen" in document.text


def test_outline_mapping_sorted_by_position():
    """Test that chapters follow text order, not outline order."""
    text = "Alpha section text that is long enough.\n\nBeta section text that is long enough."

    chapters = build_chapters_from_outline(["Beta", "Alpha"], text)

    assert [c.title for c in chapters] == ["Alpha", "Beta"]


def test_outline_mapping_introduction():
    """Test that long text before the first title becomes an introduction."""
    intro = "Opening remarks. " * 15
    text = f"{intro}\n\nFirst Part\nSome text for the first part.\n\nSecond Part\nSome text for the second part."

    chapters = build_chapters_from_outline(["First Part", "Second Part"], text)

    assert [c.title for c in chapters] == ["Introduction", "First Part", "Second Part"]


def test_outline_mapping_needs_two_matches():
    """Test that a single located title is not enough."""
    assert build_chapters_from_outline(["Missing", "Alpha"], "Alpha text here and more text") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
