"""Find the table of contents and decide whether it carries page numbers.

These two answers pick the entry point of the mode cascade.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pageindex import prompts
from pageindex.context import PipelineContext
from pageindex.log import log
from pageindex.oracle_json import yes_answer

_DOT_LEADERS = re.compile(r"\.{5,}")
_SPACED_DOT_LEADERS = re.compile(r"(?:\. ){5,}\.?")


@dataclass
class TocCheck:
    toc_content: str = ""
    toc_pages: list[int] = field(default_factory=list)   # physical indices
    page_index_given: bool = False

    @property
    def has_toc(self) -> bool:
        return bool(self.toc_pages) and bool(self.toc_content.strip())


def detect_toc_on_page(ctx: PipelineContext, physical_index: int) -> bool:
    reply = ctx.ask_json(prompts.toc_detection(ctx.pages.page(physical_index).text))
    return yes_answer(reply, "toc_detected")


def find_toc_pages(ctx: PipelineContext) -> list[int]:
    """Physical indices of the first contiguous run of TOC pages.

    The first ``toc_check_page_num`` pages are classified concurrently. If
    the last page of that budget is part of the run, scanning continues one
    page at a time until a page without TOC content is found.
    """
    budget = min(ctx.config.toc_check_page_num, ctx.pages.last_index)
    candidates = list(range(1, budget + 1))
    results = ctx.fork_join(lambda i: detect_toc_on_page(ctx, i), candidates)

    toc_pages: list[int] = []
    for physical_index, detected in zip(candidates, results):
        if detected:
            toc_pages.append(physical_index)
        elif toc_pages:
            break

    if toc_pages and toc_pages[-1] == budget:
        for physical_index in range(budget + 1, ctx.pages.last_index + 1):
            if not detect_toc_on_page(ctx, physical_index):
                break
            toc_pages.append(physical_index)

    if toc_pages:
        log(f"TOC found on pages {toc_pages[0]}-{toc_pages[-1]}")
    else:
        log("No TOC found")
    return toc_pages


def transform_dots_to_colon(text: str) -> str:
    text = _DOT_LEADERS.sub(": ", text)
    return _SPACED_DOT_LEADERS.sub(": ", text)


def extract_toc_content(ctx: PipelineContext, toc_pages: list[int]) -> str:
    return transform_dots_to_colon("".join(ctx.pages.page(i).text for i in toc_pages))


def detect_page_index(ctx: PipelineContext, toc_content: str) -> bool:
    return yes_answer(ctx.ask_json(prompts.page_index_detection(toc_content)),
                      "page_index_given_in_toc")


def check_toc(ctx: PipelineContext) -> TocCheck:
    toc_pages = find_toc_pages(ctx)
    if not toc_pages:
        return TocCheck()
    content = extract_toc_content(ctx, toc_pages)
    given = detect_page_index(ctx, content)
    log(f"Page numbers given in TOC: {'yes' if given else 'no'}")
    return TocCheck(toc_content=content, toc_pages=toc_pages, page_index_given=given)
