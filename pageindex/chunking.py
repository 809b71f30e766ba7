"""Split a page range into token-bounded groups for the oracle.

Groups overlap by a configurable number of pages so a section that starts
at a group boundary is still seen with its preceding context.
"""

from __future__ import annotations

import math

from pageindex.log import log
from pageindex.pages import Page, PageStore


def plan_page_groups(pages: list[Page], max_tokens: int, overlap: int = 1) -> list[list[Page]]:
    """Greedy grouping with a target size between an even split and a full pack.

    With ``T`` total tokens and ceiling ``L``: one group if ``T <= L``,
    otherwise ``parts = ceil(T / L)`` and each group closes once the next
    page would push it past ``ceil((T / parts + L) / 2)`` tokens. The next
    group re-opens with the last ``overlap`` pages of the closed one.
    """
    if not pages:
        return []
    total = sum(p.token_count for p in pages)
    if total <= max_tokens:
        return [list(pages)]

    parts = math.ceil(total / max_tokens)
    target = math.ceil((total / parts + max_tokens) / 2)

    groups: list[list[Page]] = []
    current: list[Page] = []
    current_tokens = 0
    fresh = 0  # pages in ``current`` that are not carried-over overlap
    for i, page in enumerate(pages):
        if fresh and current_tokens + page.token_count > target:
            groups.append(current)
            carry = max(0, min(overlap, i))
            current = list(pages[i - carry:i])
            current_tokens = sum(p.token_count for p in current)
            fresh = 0
        current.append(page)
        current_tokens += page.token_count
        fresh += 1

    if fresh:
        groups.append(current)
    log(f"Divided {len(pages)} pages into {len(groups)} groups", "DEBUG",
        total_tokens=total, target_tokens=target)
    return groups


def group_texts(store: PageStore, start: int, end: int, max_tokens: int,
                overlap: int = 1) -> list[str]:
    """Page-tagged text of each planned group over ``start..end``."""
    groups = plan_page_groups(store.pages_in(start, end), max_tokens, overlap)
    return [
        store.tagged_text(group[0].physical_index, group[-1].physical_index)
        for group in groups
    ]
