"""Configuration module for flowread."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Fetch Configuration
DIRECT_FETCH_TIMEOUT = float(os.getenv("DIRECT_FETCH_TIMEOUT", "10"))
PROXY_FETCH_TIMEOUT = float(os.getenv("PROXY_FETCH_TIMEOUT", "15"))
FETCH_ATTEMPTS_PER_TRANSPORT = int(os.getenv("FETCH_ATTEMPTS_PER_TRANSPORT", "2"))
FETCH_RETRY_BACKOFF = 0.5  # Seconds, doubled per retry
FETCH_USER_AGENT = "Mozilla/5.0 (compatible; Flowread/1.0)"
# Fallback transports, tried in order after the direct fetch. "{url}" is the quoted target.
FALLBACK_PROXIES = [
    p.strip() for p in os.getenv(
        "FALLBACK_PROXIES",
        "https://api.allorigins.win/raw?url={url},https://corsproxy.io/?{url}"
    ).split(",") if p.strip()
]
MIN_HTML_SIZE = 500

# Extraction Configuration
MIN_URL_TEXT_CHARS = 50
MIN_FILE_TEXT_CHARS = 20
MIN_OTHER_FILE_CHARS = 50  # Files that are neither .txt nor .pdf
MIN_PDF_TEXT_CHARS = 30
MIN_PASTE_WORDS = 50
PDF_LINE_THRESHOLD = 5  # Points of vertical movement that start a new line
PDF_PROGRESS_MIN_PAGES = 20
ARTICLE_MIN_EXTRACTED_SIZE = 250  # Shorter extractions make trafilatura try its fallbacks

# Segmentation Configuration
CHAPTER_TITLE_MAX = 80
INTRO_MIN_CHARS = 100
OUTLINE_INTRO_MIN_CHARS = 50
OUTLINE_INTRO_MIN_OFFSET = 200
MIN_CHAPTER_CHARS = 30
MIN_OUTLINE_CHAPTER_CHARS = 20
CHUNK_TRIGGER_WORDS = 5000
CHUNK_SIZE_WORDS = int(os.getenv("CHUNK_SIZE_WORDS", "2000"))
MIN_CHAPTER_WORDS = 4  # Chapters with fewer real words are skipped for playback

# Playback Configuration (milliseconds unless noted)
MIN_WPM = 50
MAX_WPM = 1200
WPM_STEP = 50
SKIP_WORDS = 10
SENTENCE_PAUSE_MS = 50
CLAUSE_PAUSE_MS = 25
PARAGRAPH_PAUSE_MS = 100
FADE_MS = 60
CHAPTER_PAUSE_MS = 500
RAMP_START_WPM = 200
RAMP_END_WPM = 700
RAMP_DURATION_MS = 30000
RAMP_TICK_MS = 500
MIN_SESSION_WORDS = 5
MIN_STATS_WORDS = 3
MAX_REPORTED_WPM = 2000
AUTOSAVE_INTERVAL_MS = int(os.getenv("AUTOSAVE_INTERVAL_MS", "30000"))

# Storage Configuration
DB_PATH = Path(os.getenv("DB_PATH", "./output/flowread.db"))
OFFLINE_QUEUE_PATH = Path(os.getenv("OFFLINE_QUEUE_PATH", "./output/offline_queue.json"))
OFFLINE_QUEUE_MAX = int(os.getenv("OFFLINE_QUEUE_MAX", "200"))

# Ensure output directories exist
DB_PATH.parent.mkdir(parents=True, exist_ok=True)
OFFLINE_QUEUE_PATH.parent.mkdir(parents=True, exist_ok=True)
