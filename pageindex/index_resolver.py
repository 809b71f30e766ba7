"""Resolve physical page indices for flat entries.

Three interchangeable strategies, one per cascade mode:

  (a) process_toc_with_page_numbers  infer the printed-to-physical page
                                     offset from a post-TOC window
  (b) process_toc_no_page_numbers    walk the document group by group and
                                     let the oracle tag where entries start
  (c) process_no_toc                 generate the structure from the pages

Each returns a fresh list of entries; indices the oracle never gave stay
``None``.
"""

from __future__ import annotations

from collections import Counter
from typing import Optional

from pageindex import prompts
from pageindex.chunking import group_texts
from pageindex.context import PipelineContext
from pageindex.log import log
from pageindex.models import Entry
from pageindex.oracle_json import entries_from_json, entries_to_json, parse_physical_index
from pageindex.structure_parser import generate_toc_continue, generate_toc_init, transform_toc


# ---------------------------------------------------------------------------
# Offset inference
# ---------------------------------------------------------------------------

def remove_page_numbers(entries: list[Entry]) -> list[Entry]:
    stripped = []
    for e in entries:
        e = e.copy()
        e.page = None
        stripped.append(e)
    return stripped


def extract_matching_page_pairs(with_pages: list[Entry], with_indices: list[Entry],
                                start_page_index: int) -> list[tuple[str, int, int]]:
    """``(title, page, physical_index)`` for titles found on both sides.

    Only physical indices at or after ``start_page_index`` count, so a
    title matched on the TOC page itself cannot skew the offset.
    """
    pairs = []
    for found in with_indices:
        if found.physical_index is None or found.physical_index < start_page_index:
            continue
        for listed in with_pages:
            if listed.title == found.title and listed.page is not None:
                pairs.append((found.title, listed.page, found.physical_index))
    return pairs


def calculate_page_offset(pairs: list[tuple[str, int, int]]) -> Optional[int]:
    """Most frequent ``physical_index - page``; ties go to the first seen."""
    deltas = [physical - page for _, page, physical in pairs]
    if not deltas:
        return None
    # Counter.most_common keeps insertion order among equal counts
    return Counter(deltas).most_common(1)[0][0]


def add_page_offset(entries: list[Entry], offset: int) -> list[Entry]:
    for e in entries:
        if e.page is not None:
            e.physical_index = e.page + offset
    return entries


def resolve_unresolved_entries(ctx: PipelineContext, entries: list[Entry],
                               start: int, end: int) -> list[Entry]:
    """Locate each entry still lacking an index between its resolved neighbours.

    Runs in list order so an entry resolved here anchors the next one.
    """
    for i, entry in enumerate(entries):
        if entry.resolved:
            continue
        prev_index = next(
            (e.physical_index for e in reversed(entries[:i]) if e.resolved), start)
        next_index = next(
            (e.physical_index for e in entries[i + 1:] if e.resolved), end)
        lo, hi = min(prev_index, next_index), max(prev_index, next_index)
        content = ctx.pages.tagged_text(lo, hi)
        if not content:
            continue
        reply = ctx.ask_json(prompts.toc_item_fixer(entry.title, content))
        found = parse_physical_index(reply.get("physical_index")) if isinstance(reply, dict) else None
        if found is not None:
            entry.physical_index = found
            log(f"Resolved '{entry.title}' to page {found}", "DEBUG")
    return entries


# ---------------------------------------------------------------------------
# Strategy (a)
# ---------------------------------------------------------------------------

def toc_index_extractor(ctx: PipelineContext, entries: list[Entry], start: int, end: int) -> list[Entry]:
    """Ask which entries start inside the tagged pages ``start..end``."""
    content = ctx.pages.tagged_text(start, end)
    if not content:
        return []
    reply = ctx.ask_json(prompts.toc_index_extract(entries_to_json(entries, include_page=False), content))
    return entries_from_json(reply)


def process_toc_with_page_numbers(ctx: PipelineContext, toc_content: str,
                                  toc_pages: list[int], start: int, end: int) -> list[Entry]:
    parsed = transform_toc(ctx, toc_content)
    entries = parsed.entries
    if not entries:
        log("TOC transformation produced no entries", "WARN", reason=getattr(parsed, "reason", ""))
        return []

    window_start = (toc_pages[-1] + 1) if toc_pages else start
    window_end = min(window_start + ctx.config.toc_check_page_num - 1, end)
    located = toc_index_extractor(ctx, remove_page_numbers(entries), window_start, window_end)

    pairs = extract_matching_page_pairs(entries, located, window_start)
    offset = calculate_page_offset(pairs)
    log(f"Page offset: {offset} (from {len(pairs)} matching pairs)")

    entries = [e.copy() for e in entries]
    if offset is not None:
        add_page_offset(entries, offset)
    return resolve_unresolved_entries(ctx, entries, start, end)


# ---------------------------------------------------------------------------
# Strategy (b)
# ---------------------------------------------------------------------------

def merge_page_numbers(current: list[Entry], reply) -> list[Entry]:
    """Fill indices the oracle reports as starting in this group.

    Entries that already have an index are never overwritten, whatever the
    oracle sends back for them.
    """
    if isinstance(reply, dict):
        reply = reply.get("table_of_contents", reply.get("items", []))
    if not isinstance(reply, list):
        return current

    merged = [e.copy() for e in current]
    used: set[int] = set()
    for pos, item in enumerate(reply):
        if not isinstance(item, dict):
            continue
        if str(item.get("start", "")).strip().lower() != "yes":
            continue
        physical = parse_physical_index(item.get("physical_index"))
        if physical is None:
            continue
        title = item.get("title")
        if pos < len(merged) and merged[pos].title == title and pos not in used:
            target = pos
        else:
            target = next((i for i, e in enumerate(merged)
                           if e.title == title and i not in used and not e.resolved), None)
        if target is None:
            continue
        used.add(target)
        if not merged[target].resolved:
            merged[target].physical_index = physical
    return merged


def add_page_number_to_toc(ctx: PipelineContext, part: str, entries: list[Entry]) -> list[Entry]:
    reply = ctx.ask_json(prompts.add_page_number(part, entries_to_json(entries, include_page=False)))
    return merge_page_numbers(entries, reply)


def process_toc_no_page_numbers(ctx: PipelineContext, toc_content: str,
                                start: int, end: int) -> list[Entry]:
    parsed = transform_toc(ctx, toc_content)
    entries = remove_page_numbers(parsed.entries)
    if not entries:
        log("TOC transformation produced no entries", "WARN")
        return []
    parts = group_texts(ctx.pages, start, end, ctx.config.max_tokens_per_chunk,
                        ctx.config.chunk_overlap_pages)
    log(f"Tagging {len(entries)} TOC entries across {len(parts)} page groups")
    for part in parts:
        entries = add_page_number_to_toc(ctx, part, entries)
    return entries


# ---------------------------------------------------------------------------
# Strategy (c)
# ---------------------------------------------------------------------------

def process_no_toc(ctx: PipelineContext, start: int, end: int) -> list[Entry]:
    parts = group_texts(ctx.pages, start, end, ctx.config.max_tokens_per_chunk,
                        ctx.config.chunk_overlap_pages)
    if not parts:
        return []
    log(f"Generating structure for pages {start}-{end} from {len(parts)} groups")
    entries = list(generate_toc_init(ctx, parts[0]).entries)
    for part in parts[1:]:
        entries.extend(generate_toc_continue(ctx, entries, part).entries)
    log(f"Generated {len(entries)} entries", "DEBUG")
    return entries


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

def validate_and_truncate(entries: list[Entry], start: int, end: int) -> list[Entry]:
    """Reset indices outside ``start..end`` to unresolved; entries are kept."""
    for e in entries:
        if e.physical_index is not None and not (start <= e.physical_index <= end):
            log(f"Index {e.physical_index} of '{e.title}' outside {start}-{end}, cleared", "DEBUG")
            e.physical_index = None
    return entries
