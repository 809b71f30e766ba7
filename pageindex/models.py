"""Core records shared by every stage of the page index pipeline.

Entry            one flat table-of-contents record, mutated as indices resolve
TreeNode         one node of the emitted section tree, owns its children
VerificationOutcome
                 result of checking one entry against its mapped page
Complete/Partial tagged result of parsing oracle output into entries
Mode             the three resolution strategies of the fallback cascade
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union


# ---------------------------------------------------------------------------
# Flat entries
# ---------------------------------------------------------------------------

APPEAR_YES = "yes"
APPEAR_NO = "no"
APPEAR_UNKNOWN = "unknown"


@dataclass
class Entry:
    """A flat TOC record. ``structure`` is a dotted hierarchy code like "1.2.3"."""
    title: str
    structure: Optional[str] = None
    page: Optional[int] = None              # nominal page printed in the TOC
    physical_index: Optional[int] = None    # 1-based page position in the document
    appear_start: str = APPEAR_UNKNOWN      # yes | no | unknown

    @property
    def resolved(self) -> bool:
        return self.physical_index is not None

    def copy(self) -> "Entry":
        return Entry(
            title=self.title,
            structure=self.structure,
            page=self.page,
            physical_index=self.physical_index,
            appear_start=self.appear_start,
        )

    def to_prompt_dict(self, include_page: bool = True) -> dict:
        """Render for an oracle prompt, physical index in tag form."""
        d: dict = {"structure": self.structure, "title": self.title}
        if include_page and self.page is not None:
            d["page"] = self.page
        if self.physical_index is not None:
            d["physical_index"] = f"<physical_index_{self.physical_index}>"
        return d


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

@dataclass
class TreeNode:
    title: str
    start_index: int
    end_index: int
    node_id: Optional[str] = None
    text: Optional[str] = None
    summary: Optional[str] = None
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def page_span(self) -> int:
        return self.end_index - self.start_index

    def walk(self):
        """Pre-order traversal of this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict:
        d: dict = {"title": self.title}
        if self.node_id is not None:
            d["node_id"] = self.node_id
        d["start_index"] = self.start_index
        d["end_index"] = self.end_index
        if self.text is not None:
            d["text"] = self.text
        if self.summary is not None:
            d["summary"] = self.summary
        if self.children:
            d["children"] = [c.to_dict() for c in self.children]
        return d


def walk_forest(nodes: list[TreeNode]):
    for node in nodes:
        yield from node.walk()


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

@dataclass
class VerificationOutcome:
    list_index: int                 # position in the flat entry list
    title: str
    page_number: Optional[int]      # page the title was checked against
    correct: bool


# ---------------------------------------------------------------------------
# Parser results
# ---------------------------------------------------------------------------

@dataclass
class Complete:
    entries: list[Entry]

    is_complete = True


@dataclass
class Partial:
    entries: list[Entry]
    reason: str

    is_complete = False


ParseResult = Union[Complete, Partial]


# ---------------------------------------------------------------------------
# Cascade modes
# ---------------------------------------------------------------------------

class Mode(enum.Enum):
    WITH_PAGE_NUMBERS = "process_toc_with_page_numbers"
    NO_PAGE_NUMBERS = "process_toc_no_page_numbers"
    NO_TOC = "process_no_toc"


# None marks the terminal state: falling off NO_TOC is fatal.
NEXT_MODE: dict[Mode, Optional[Mode]] = {
    Mode.WITH_PAGE_NUMBERS: Mode.NO_PAGE_NUMBERS,
    Mode.NO_PAGE_NUMBERS: Mode.NO_TOC,
    Mode.NO_TOC: None,
}
