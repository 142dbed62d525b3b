"""Test text normalization."""
import pytest
from ingestion.cleaner import clean_pdf_text, normalize, normalize_whitespace, remove_repeated_lines


NOISY = (
    "The inter-\nnational community has\nrecognized [1] that climate\n"
    "change (Smith et al., 2021) poses\n\n\n\n• significant risks\n"
    "— to biodiversity.\nSee https://example.com for more.\n\n"
    "References\nSmith, J. (2021). Climate..."
)


def test_noisy_example():
    """Test the full pipeline on a noisy PDF excerpt."""
    result = normalize(NOISY)

    assert result == (
        "The international community has recognized that climate change poses\n\n"
        "significant risks to biodiversity.\nSee for more."
    )


def test_idempotent():
    """Test that normalizing twice changes nothing."""
    samples = [
        NOISY,
        "• one\n• two\n• three",
        "A line\nbroken here [2]\n\n\n- bullet (3) text\ncontinues",
        "Plain text.",
        "",
    ]
    for sample in samples:
        once = normalize(sample)
        assert normalize(once) == once


def test_no_new_characters():
    """Test that cleaning only removes characters or adds join spaces."""
    result = normalize(NOISY)
    source_chars = set(NOISY)
    assert set(result) <= source_chars | {' '}


def test_hyphenated_wrap():
    """Test that words split by a hyphen at a line end are rejoined."""
    assert normalize("inter-\nnational") == "international"


def test_broken_line_join_keeps_paragraphs():
    """Test that lowercase continuations join but blank lines survive."""
    text = "the cat sat\non the mat\n\nanother paragraph"
    assert normalize(text) == "the cat sat on the mat\n\nanother paragraph"


def test_sentence_end_keeps_line_break():
    """Test that a line ending a sentence is not joined."""
    assert normalize("It ended.\nthen more") == "It ended.\nthen more"


def test_citations_stripped():
    """Test author-year citation removal."""
    assert normalize("foo (Smith, 2020) bar") == "foo bar"
    assert normalize("foo (Smith & Jones, 2019; Lee, 2020) bar") == "foo bar"


def test_footnotes_stripped():
    """Test bracket and parenthesized footnote markers."""
    assert normalize("Claim [1] and [2,3] and [4-6] here") == "Claim and and here"
    assert normalize("A note (12) here.") == "A note here."


def test_urls_stripped():
    """Test URL removal."""
    assert normalize("Visit www.example.org today") == "Visit today"
    assert normalize("Go to http://a.b/c?d=e now") == "Go to now"


def test_references_truncated():
    """Test that everything from a references heading on is dropped."""
    text = "Body text here.\n\nBibliography\nA. Author. Title. 1999."
    assert normalize(text) == "Body text here."


def test_bullets_stripped():
    """Test bullet glyph removal at line starts."""
    assert normalize("▪ First point.\n► Second point.") == "First point.\nSecond point."


def test_non_string_input():
    """Test that non-string input gives an empty string."""
    assert normalize(None) == ""
    assert normalize(42) == ""
    assert normalize("") == ""


def test_normalize_whitespace():
    """Test whitespace canonicalization."""
    assert normalize_whitespace("  a \t b  \n\n\n\n  c  ") == "a b\n\nc"


def test_pdf_page_numbers_removed():
    """Test PDF footer removal."""
    text = "Some text here.\n12\nPage 3 of 10\n- 4 -\nMore text."
    assert clean_pdf_text(text) == "Some text here.\n\nMore text."


def test_repeated_lines_removed():
    """Test running header removal."""
    text = "\n".join(["My Book", "First page text.", "My Book", "Second page text.", "My Book", "End."])
    assert remove_repeated_lines(text) == "First page text.\nSecond page text.\nEnd."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
