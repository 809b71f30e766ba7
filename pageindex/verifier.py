"""Check resolved entries against the pages they point at.

``verify_toc`` samples entries and asks, concurrently, whether each title
appears on its mapped page. ``check_title_appearance_in_start_concurrent``
asks the sharper question of whether a section begins at the top of its
page, which decides page-boundary sharing in tree assembly.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional

from pageindex import prompts
from pageindex.context import PipelineContext
from pageindex.log import log
from pageindex.models import APPEAR_NO, APPEAR_YES, Entry, VerificationOutcome
from pageindex.oracle_json import yes_answer


@dataclass
class VerificationReport:
    accuracy: float
    incorrect: list[VerificationOutcome] = field(default_factory=list)
    checked: int = 0


def check_title_appearance(ctx: PipelineContext, title: str, physical_index: Optional[int]) -> bool:
    """Does ``title`` appear or start on page ``physical_index``?"""
    if not ctx.pages.contains(physical_index):
        return False
    reply = ctx.ask_json(prompts.title_check(title, ctx.pages.page(physical_index).text))
    return yes_answer(reply, "answer")


def _last_resolved_index(entries: list[Entry]) -> Optional[int]:
    for e in reversed(entries):
        if e.resolved:
            return e.physical_index
    return None


def verify_toc(ctx: PipelineContext, entries: list[Entry], start: int, end: int,
               sample_size: Optional[int] = None,
               rng: Optional[random.Random] = None) -> VerificationReport:
    """Accuracy of ``entries`` over ``start..end`` plus the incorrect outcomes.

    Spends no oracle calls (accuracy 0) when the last resolved index covers
    less than half of the range. Entries without an index count as
    incorrect; accuracy is correct over sampled.
    """
    last = _last_resolved_index(entries)
    span = end - start + 1
    if last is None or (last - start + 1) < span / 2:
        log(f"Resolved indices cover too little of pages {start}-{end}, accuracy 0", "WARN",
            last_resolved=last)
        return VerificationReport(accuracy=0.0)

    if sample_size is None or sample_size >= len(entries):
        sample = list(range(len(entries)))
    else:
        sample = sorted((rng or random.Random()).sample(range(len(entries)), sample_size))
    log(f"Verifying {len(sample)} of {len(entries)} entries", "DEBUG")

    def check(list_index: int) -> VerificationOutcome:
        e = entries[list_index]
        correct = e.resolved and check_title_appearance(ctx, e.title, e.physical_index)
        return VerificationOutcome(list_index, e.title, e.physical_index, bool(correct))

    outcomes = ctx.fork_join(check, sample)
    incorrect = [o for o in outcomes if not o.correct]
    accuracy = (len(outcomes) - len(incorrect)) / len(outcomes) if outcomes else 0.0
    log(f"Verification accuracy: {accuracy:.2%}", incorrect=len(incorrect))
    return VerificationReport(accuracy=accuracy, incorrect=incorrect, checked=len(outcomes))


def check_title_appearance_in_start(ctx: PipelineContext, title: str, physical_index: int) -> str:
    if not ctx.pages.contains(physical_index):
        return APPEAR_NO
    reply = ctx.ask_json(prompts.title_start_check(title, ctx.pages.page(physical_index).text))
    return APPEAR_YES if yes_answer(reply, "start_begin") else APPEAR_NO


def check_title_appearance_in_start_concurrent(ctx: PipelineContext, entries: list[Entry]) -> list[Entry]:
    """Set ``appear_start`` on every entry; unresolved entries get "no"."""
    for e in entries:
        if not e.resolved:
            e.appear_start = APPEAR_NO
    resolved = [e for e in entries if e.resolved]
    answers = ctx.fork_join(
        lambda e: check_title_appearance_in_start(ctx, e.title, e.physical_index), resolved)
    for e, answer in zip(resolved, answers):
        e.appear_start = answer
    return entries
