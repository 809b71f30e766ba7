"""Mode cascade: resolve, verify, repair or fall back.

    WITH_PAGE_NUMBERS -> NO_PAGE_NUMBERS -> NO_TOC -> ModeExhaustedError

The entry mode is the highest one the TOC check allows. A mode's result is
accepted as-is at accuracy 1.0, accepted after repair above the configured
threshold, and otherwise discarded in favour of the next mode.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from pageindex.context import PipelineContext
from pageindex.errors import ModeExhaustedError
from pageindex.index_resolver import (
    process_no_toc,
    process_toc_no_page_numbers,
    process_toc_with_page_numbers,
    validate_and_truncate,
)
from pageindex.log import log, log_separator
from pageindex.models import NEXT_MODE, Entry, Mode
from pageindex.repairer import fix_incorrect_toc_with_retries
from pageindex.toc_detection import TocCheck
from pageindex.verifier import verify_toc


@dataclass
class CascadeResult:
    entries: list[Entry]
    mode: Mode
    accuracy: float
    unrepaired: int = 0


def initial_mode(toc: TocCheck) -> Mode:
    if toc.has_toc and toc.page_index_given:
        return Mode.WITH_PAGE_NUMBERS
    if toc.has_toc:
        return Mode.NO_PAGE_NUMBERS
    return Mode.NO_TOC


def resolve_with_mode(ctx: PipelineContext, mode: Mode, toc: TocCheck,
                      start: int, end: int) -> list[Entry]:
    if mode is Mode.WITH_PAGE_NUMBERS:
        return process_toc_with_page_numbers(ctx, toc.toc_content, toc.toc_pages, start, end)
    if mode is Mode.NO_PAGE_NUMBERS:
        return process_toc_no_page_numbers(ctx, toc.toc_content, start, end)
    return process_no_toc(ctx, start, end)


def meta_processor(ctx: PipelineContext, toc: TocCheck, start: int, end: int,
                   mode: Optional[Mode] = None,
                   rng: Optional[random.Random] = None) -> CascadeResult:
    """Run the cascade over pages ``start..end`` until a mode is accepted."""
    mode = mode or initial_mode(toc)
    while mode is not None:
        log_separator(mode.value)
        entries = [e for e in resolve_with_mode(ctx, mode, toc, start, end) if e.resolved]
        entries = validate_and_truncate(entries, start, end)

        report = verify_toc(ctx, entries, start, end,
                            sample_size=ctx.config.verify_sample_size, rng=rng)
        log(f"Mode {mode.name}: accuracy {report.accuracy:.2f}", mode=mode.name,
            entries=len(entries), incorrect=len(report.incorrect))

        if report.accuracy == 1.0 and not report.incorrect:
            return CascadeResult(entries, mode, report.accuracy)
        if report.accuracy > ctx.config.accept_accuracy:
            repaired = fix_incorrect_toc_with_retries(ctx, entries, report.incorrect, start, end)
            if repaired.incorrect:
                log(f"{len(repaired.incorrect)} entries still incorrect after "
                    f"{repaired.attempts} repair passes", "WARN")
            return CascadeResult(repaired.entries, mode, report.accuracy, len(repaired.incorrect))

        next_mode = NEXT_MODE[mode]
        if next_mode is not None:
            log(f"Accuracy too low for {mode.name}, falling back to {next_mode.name}", "WARN")
        mode = next_mode

    raise ModeExhaustedError(f"No mode reached acceptable accuracy for pages {start}-{end}")
