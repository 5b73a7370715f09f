"""
Loan Audit Engine - Text Normalizer

Turns raw per-page text into the flat line sequence every extractor reads.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

from .errors import DocumentEmptyError, UnreadableDocumentError, UnsupportedDocumentTypeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedDocument:
    """Trimmed statement lines, shorter lines already dropped."""
    lines: Tuple[str, ...]
    page_count: int

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)

    def header(self, size: int) -> Tuple[str, ...]:
        return self.lines[:size]

    @property
    def joined(self) -> str:
        """All lines joined with single spaces, for patterns spanning lines."""
        return " ".join(self.lines)


def normalize_pages(pages: Sequence[Optional[str]], min_line_length: int = 5) -> NormalizedDocument:
    """
    Split pages into trimmed lines and drop lines shorter than min_line_length.

    Missing pages (None) are skipped.

    Raises:
        DocumentEmptyError: the document has zero pages
        UnsupportedDocumentTypeError: a page is not text
        UnreadableDocumentError: no lines remain after normalization
    """
    if pages is None or len(pages) == 0:
        raise DocumentEmptyError()

    lines = []
    for index, page_text in enumerate(pages):
        if page_text is None:
            continue
        if not isinstance(page_text, str):
            raise UnsupportedDocumentTypeError(
                f"Page {index + 1} is {type(page_text).__name__}, expected text"
            )
        for raw_line in page_text.splitlines():
            line = raw_line.strip()
            if len(line) >= min_line_length:
                lines.append(line)

    if not lines:
        raise UnreadableDocumentError()

    logger.debug(f"Normalized {len(pages)} pages into {len(lines)} lines")
    return NormalizedDocument(lines=tuple(lines), page_count=len(pages))
