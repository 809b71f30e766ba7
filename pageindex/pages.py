"""PageStore: the ordered, 1-indexed, gapless pages of one document.

Pages come from an upstream extractor as JSONL, one page per line:

    {"physical_index": 1, "text": "...", "token_count": 412}

``token_count`` is optional; missing counts are filled with tiktoken.
"""

from __future__ import annotations

import functools
import json
from dataclasses import dataclass
from pathlib import Path

import tiktoken

from pageindex.errors import ConfigError


@dataclass(frozen=True)
class Page:
    physical_index: int
    text: str
    token_count: int


# ---------------------------------------------------------------------------
# Token counting
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=8)
def _get_encoding(model: str | None) -> "tiktoken.Encoding":
    """tiktoken encoder for ``model``, cl100k_base when the model is unknown."""
    if model:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            pass
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str, model: str | None = None) -> int:
    if not text:
        return 0
    return len(_get_encoding(model).encode(text, disallowed_special=()))


# ---------------------------------------------------------------------------
# Page tags
# ---------------------------------------------------------------------------

def tag_page(physical_index: int, text: str) -> str:
    return f"<physical_index_{physical_index}>\n{text}\n<physical_index_{physical_index}>\n\n"


# ---------------------------------------------------------------------------
# PageStore
# ---------------------------------------------------------------------------

class PageStore:
    """Read-only view over a document's pages."""

    def __init__(self, pages: list[Page], doc_name: str = "document"):
        if not pages:
            raise ConfigError("Document has no pages")
        for expected, page in enumerate(pages, start=1):
            if page.physical_index != expected:
                raise ConfigError(
                    f"Pages must be contiguous from 1: expected {expected}, "
                    f"got {page.physical_index}"
                )
        self._pages = list(pages)
        self.doc_name = doc_name

    def __len__(self) -> int:
        return len(self._pages)

    @property
    def first_index(self) -> int:
        return 1

    @property
    def last_index(self) -> int:
        return len(self._pages)

    def page(self, physical_index: int) -> Page:
        if physical_index < 1 or physical_index > len(self._pages):
            raise IndexError(f"Page {physical_index} outside 1..{len(self._pages)}")
        return self._pages[physical_index - 1]

    def contains(self, physical_index: int | None) -> bool:
        return physical_index is not None and 1 <= physical_index <= len(self._pages)

    def pages_in(self, start: int, end: int) -> list[Page]:
        """Pages ``start..end`` inclusive, silently clipped to the document."""
        lo = max(start, 1)
        hi = min(end, len(self._pages))
        if lo > hi:
            return []
        return self._pages[lo - 1:hi]

    def token_sum(self, start: int, end: int) -> int:
        return sum(p.token_count for p in self.pages_in(start, end))

    def text_of(self, start: int, end: int) -> str:
        return "".join(p.text for p in self.pages_in(start, end))

    def tagged_text(self, start: int, end: int) -> str:
        return "".join(tag_page(p.physical_index, p.text) for p in self.pages_in(start, end))


def load_pages(path: str, model: str | None = None) -> PageStore:
    """Load a JSONL page file. Blank lines are skipped."""
    records = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{path}:{line_no}: invalid JSON ({e})")
            idx = rec.get("physical_index", rec.get("page"))
            text = rec.get("text", rec.get("content"))
            if idx is None or text is None:
                raise ConfigError(f"{path}:{line_no}: page record needs physical_index and text")
            records.append((int(idx), text, rec.get("token_count")))

    records.sort(key=lambda r: r[0])
    pages = [
        Page(idx, text, int(tokens) if tokens is not None else count_tokens(text, model))
        for idx, text, tokens in records
    ]
    return PageStore(pages, doc_name=Path(path).stem)
