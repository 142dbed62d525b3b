"""Article extraction from web pages."""
import json
from typing import Optional

import trafilatura
from trafilatura.settings import use_config
from bs4 import BeautifulSoup

from utils.logger import setup_logger
from ingestion.models import Document
from ingestion.cleaner import normalize
from ingestion.errors import ExtractionError
from ingestion.fetcher import HTMLFetcher, normalize_url
import config

logger = setup_logger(__name__)

NO_ARTICLE = (
    "Could not find the main article content. This page may require login, "
    "or it might be mostly images/video."
)
TOO_SHORT = (
    "Not enough readable text found on this page. Try a different article "
    "or paste the text into a .txt file."
)


class HTMLArticleExtractor:
    """Fetches a page and extracts its main article text."""

    def __init__(
        self,
        fetcher: Optional[HTMLFetcher] = None,
        min_chars: int = config.MIN_URL_TEXT_CHARS,
        min_extracted_size: int = config.ARTICLE_MIN_EXTRACTED_SIZE
    ):
        """
        Args:
            fetcher: Page fetcher
            min_chars: Minimum normalized article length
            min_extracted_size: Below this many characters trafilatura
                retries with its fallback extractors
        """
        self.fetcher = fetcher or HTMLFetcher()
        self.min_chars = min_chars

        # Configure trafilatura
        self.trafilatura_config = use_config()
        self.trafilatura_config.set('DEFAULT', 'MIN_EXTRACTED_SIZE', str(min_extracted_size))
        self.trafilatura_config.set('DEFAULT', 'MIN_OUTPUT_SIZE', '1')

    async def extract(self, url: str) -> Document:
        """Fetch a URL and extract its article.

        Args:
            url: Article URL, with or without scheme

        Returns:
            Document with normalized article text (no chapters)

        Raises:
            ExtractionError: If fetching fails or no article text is found
        """
        url = normalize_url(url)
        logger.info(f"Fetching article: {url}")
        html = await self.fetcher.fetch_html(url)
        return self.extract_from_html(html, url)

    def extract_from_html(self, html: str, url: Optional[str] = None) -> Document:
        """Extract article text from already fetched HTML."""
        data = self._extract_main_article(html, url)
        if not data or not (data.get('text') or '').strip():
            raise ExtractionError(NO_ARTICLE)

        text = normalize(to_paragraphs(data['text']))
        if len(text) < self.min_chars:
            raise ExtractionError(TOO_SHORT)

        word_count = len(text.split())
        title = resolve_title(data.get('title'), html)
        logger.info(f"Extracted {word_count} words from {data.get('sitename') or url or 'page'}")

        return Document(
            text=text,
            title=title,
            source_type="url",
            metadata={'url': url, 'word_count': word_count}
        )

    def _extract_main_article(self, html: str, url: Optional[str]) -> Optional[dict]:
        """Run trafilatura and return its JSON record."""
        try:
            extracted = trafilatura.extract(
                html,
                output_format='json',
                config=self.trafilatura_config,
                with_metadata=True,
                include_comments=False,
                include_tables=False,
                include_images=False,
                url=url
            )
        except Exception as e:
            logger.warning(f"Trafilatura extraction failed: {e}")
            return None

        if not extracted:
            return None
        return json.loads(extracted)


def to_paragraphs(text: str) -> str:
    """Separate trafilatura's one-block-per-line output with blank lines."""
    return '\n\n'.join(line.strip() for line in text.split('\n') if line.strip())


def resolve_title(raw_title: Optional[str], html: str) -> str:
    """Pick the article title, falling back to the page's <title>."""
    title = (raw_title or '').strip()
    if title:
        return title

    soup = BeautifulSoup(html, 'html.parser')
    if soup.title and soup.title.string and soup.title.string.strip():
        return soup.title.string.strip()
    return "Untitled"
