"""Pydantic models for ingestion module."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, List, Dict, Any, Optional, Union, Literal

import config


class Chapter(BaseModel):
    """A contiguous, labeled slice of a document."""
    model_config = ConfigDict(frozen=True)

    title: str
    text: str

    @field_validator("title")
    @classmethod
    def _short_title(cls, value: str) -> str:
        return value.strip()[:config.CHAPTER_TITLE_MAX]


class Document(BaseModel):
    """Represents normalized text extracted from a source."""
    model_config = ConfigDict(frozen=True)

    text: str
    title: str = "Untitled"
    source_type: str = "paste"  # paste, url, txt, pdf, file
    page_count: Optional[int] = None
    chapters: Optional[List[Chapter]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UrlSource(BaseModel):
    """An article to fetch and extract."""
    kind: Literal["url"] = "url"
    url: str


class FileSource(BaseModel):
    """Uploaded file content."""
    kind: Literal["file"] = "file"
    data: bytes
    name: str


class PasteSource(BaseModel):
    """Text pasted directly by the reader."""
    kind: Literal["paste"] = "paste"
    text: str


Source = Annotated[Union[UrlSource, FileSource, PasteSource], Field(discriminator="kind")]


class ChapterWords(BaseModel):
    """Word sequence for one playable chapter."""
    model_config = ConfigDict(frozen=True)

    title: str
    words: List[str]


class ReadingPlan(BaseModel):
    """Everything the playback engine needs to read a document."""
    model_config = ConfigDict(frozen=True)

    title: str
    chapters: List[ChapterWords]
    page_count: Optional[int] = None
    word_count: int = 0

    @property
    def has_chapters(self) -> bool:
        return len(self.chapters) >= 2

    def summary(self, filename: Optional[str] = None) -> str:
        """Short description shown above the reader."""
        parts = []
        if self.page_count:
            parts.append(f"{self.page_count} pages")
        if self.has_chapters:
            parts.append(f"{len(self.chapters)} chapters")
        parts.append(f"~{self.word_count} words")
        info = ", ".join(parts)
        return f"{filename} — {info}" if filename else info
