"""Re-resolve entries the verifier flagged as incorrect.

Each flagged entry is searched for between its nearest trusted neighbours
(by list position, not page value). A candidate index is committed only
when the title check confirms it. Passes repeat until nothing is left or
the attempt budget is spent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pageindex import prompts
from pageindex.context import PipelineContext
from pageindex.log import log
from pageindex.models import Entry, VerificationOutcome
from pageindex.oracle_json import parse_physical_index
from pageindex.verifier import check_title_appearance


@dataclass
class RepairResult:
    entries: list[Entry]
    incorrect: list[VerificationOutcome]
    attempts: int


def find_anchors(entries: list[Entry], list_index: int, incorrect_indices: set[int],
                 start: int, end: int) -> tuple[int, int]:
    """Physical indices of the nearest trusted entries before and after ``list_index``."""
    prev_index = start
    for i in range(list_index - 1, -1, -1):
        if i not in incorrect_indices and entries[i].resolved:
            prev_index = entries[i].physical_index
            break
    next_index = end
    for i in range(list_index + 1, len(entries)):
        if i not in incorrect_indices and entries[i].resolved:
            next_index = entries[i].physical_index
            break
    return prev_index, next_index


def single_toc_item_index_fixer(ctx: PipelineContext, title: str, start: int, end: int) -> Optional[int]:
    content = ctx.pages.tagged_text(min(start, end), max(start, end))
    if not content:
        return None
    reply = ctx.ask_json(prompts.toc_item_fixer(title, content))
    if not isinstance(reply, dict):
        return None
    return parse_physical_index(reply.get("physical_index"))


def fix_incorrect_toc(ctx: PipelineContext, entries: list[Entry],
                      incorrect: list[VerificationOutcome],
                      start: int, end: int) -> tuple[list[Entry], list[VerificationOutcome]]:
    """One repair pass. Returns the updated entries and what is still wrong.

    Candidates are searched concurrently against a fixed snapshot and only
    committed after every task finished. Outcomes that stay wrong are
    returned as the same objects that came in.
    """
    incorrect_indices = {o.list_index for o in incorrect}

    def attempt(outcome: VerificationOutcome) -> Optional[int]:
        if not 0 <= outcome.list_index < len(entries):
            return None
        lo, hi = find_anchors(entries, outcome.list_index, incorrect_indices, start, end)
        candidate = single_toc_item_index_fixer(ctx, outcome.title, lo, hi)
        if candidate is not None and check_title_appearance(ctx, outcome.title, candidate):
            return candidate
        return None

    candidates = ctx.fork_join(attempt, incorrect)

    updated = [e.copy() for e in entries]
    still_wrong = []
    for outcome, candidate in zip(incorrect, candidates):
        if candidate is None:
            still_wrong.append(outcome)
        else:
            updated[outcome.list_index].physical_index = candidate
    log(f"Repaired {len(incorrect) - len(still_wrong)} entries, {len(still_wrong)} remain incorrect")
    return updated, still_wrong


def fix_incorrect_toc_with_retries(ctx: PipelineContext, entries: list[Entry],
                                   incorrect: list[VerificationOutcome],
                                   start: int, end: int,
                                   max_attempts: Optional[int] = None) -> RepairResult:
    if max_attempts is None:
        max_attempts = ctx.config.repair_max_attempts
    attempts = 0
    while incorrect and attempts < max_attempts:
        attempts += 1
        log(f"Repair pass {attempts}/{max_attempts}", "DEBUG", incorrect=len(incorrect))
        entries, incorrect = fix_incorrect_toc(ctx, entries, incorrect, start, end)
    return RepairResult(entries=entries, incorrect=incorrect, attempts=attempts)
