"""Turn TOC text or page-tagged content into flat entries via the oracle.

Every function returns a ``Complete`` or ``Partial`` result. Oracle output
that is truncated or malformed is repaired as far as possible and tagged
``Partial``; it never raises.
"""

from __future__ import annotations

from pageindex import prompts
from pageindex.context import PipelineContext
from pageindex.llm_client import FINISHED
from pageindex.log import log
from pageindex.models import Complete, Entry, ParseResult, Partial
from pageindex.oracle_json import (
    entries_from_json,
    entries_to_json,
    extract_json,
    get_json_content,
    merge_json_structures,
    parse_repaired,
    truncate_to_last_complete_object,
    yes_answer,
)


def check_transformation_complete(ctx: PipelineContext, raw_toc: str, transformed: str) -> bool:
    """Ask the oracle whether ``transformed`` renders all of ``raw_toc``."""
    reply = ctx.ask_json(prompts.toc_transform_complete(raw_toc, transformed))
    return yes_answer(reply, "completed")


def transform_toc(ctx: PipelineContext, toc_content: str) -> ParseResult:
    """Raw TOC text to entries, continuing truncated output up to the budget.

    A reply is accepted only when the transport says it finished and a
    separate completeness question says yes. Otherwise the buffer is cut
    back to its last closed object and the oracle is asked for the rest.
    """
    content, status = ctx.ask_with_status(prompts.toc_transform(toc_content))
    complete = check_transformation_complete(ctx, toc_content, content)

    if complete and status == FINISHED:
        entries = entries_from_json(extract_json(content))
        if entries:
            log(f"Transformed TOC into {len(entries)} entries")
            return Complete(entries)
        return Partial([], "TOC transformation returned no entries")

    buffer = get_json_content(content)
    attempts = 0
    while not (complete and status == FINISHED) and attempts < ctx.config.max_continuations:
        attempts += 1
        log(f"Continuing TOC transformation (attempt {attempts})", "DEBUG")
        buffer = truncate_to_last_complete_object(buffer)
        addition, status = ctx.ask_with_status(prompts.toc_transform_continue(toc_content, buffer))
        buffer = merge_json_structures(buffer, get_json_content(addition))
        complete = check_transformation_complete(ctx, toc_content, buffer)

    entries = entries_from_json(parse_repaired(buffer))
    if complete and status == FINISHED:
        log(f"Transformed TOC into {len(entries)} entries after {attempts} continuations")
        return Complete(entries)
    log(f"TOC transformation incomplete after {attempts} continuations, "
        f"keeping {len(entries)} entries", "WARN")
    return Partial(entries, f"incomplete after {attempts} continuations")


def _parse_generated(content: str, status: str, what: str) -> ParseResult:
    if status == FINISHED:
        data = extract_json(content)
        entries = entries_from_json(data)
        if entries or data == []:
            return Complete(entries)
        return Partial([], f"{what}: unparseable reply")
    entries = entries_from_json(parse_repaired(truncate_to_last_complete_object(get_json_content(content))))
    log(f"{what} was truncated, salvaged {len(entries)} entries", "WARN")
    return Partial(entries, f"{what}: truncated")


def generate_toc_init(ctx: PipelineContext, part: str) -> ParseResult:
    """Invent a structure for the first group of pages."""
    content, status = ctx.ask_with_status(prompts.generate_toc_init(part))
    return _parse_generated(content, status, "structure generation")


def generate_toc_continue(ctx: PipelineContext, existing: list[Entry], part: str) -> ParseResult:
    """Entries for ``part`` that continue ``existing``; only new ones are returned."""
    content, status = ctx.ask_with_status(
        prompts.generate_toc_continue(entries_to_json(existing, include_page=False), part)
    )
    return _parse_generated(content, status, "structure continuation")
