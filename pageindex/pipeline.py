"""One document, end to end.

    pages -> TOC check -> mode cascade -> preface + start check -> tree
          -> recursive splitting -> range finalisation -> enrichment
          -> invariant + schema validation -> output JSON

The worker pool lives exactly as long as one ``page_index_main`` call.
"""

from __future__ import annotations

import json
import random
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

import jsonschema

from pageindex.config import PageIndexConfig
from pageindex.context import PipelineContext
from pageindex.enrich import (
    add_node_text,
    generate_doc_description,
    generate_summaries_for_structure,
    remove_node_text,
    write_node_ids,
)
from pageindex.errors import TreeValidationError
from pageindex.log import log, log_separator
from pageindex.models import TreeNode, walk_forest
from pageindex.node_splitter import process_tree_recursively
from pageindex.orchestrator import meta_processor
from pageindex.pages import PageStore
from pageindex.toc_detection import check_toc
from pageindex.tree_assembly import (
    add_preface_if_needed,
    finalize_ranges,
    keep_monotonic,
    post_processing,
    validate_tree,
)
from pageindex.verifier import check_title_appearance_in_start_concurrent

SCHEMA_FILENAME = "page_index_tree_schema.json"


def find_repo_root() -> Path:
    """Directory holding pageindex/ and schemas/."""
    here = Path(__file__).resolve().parent
    candidate = here.parent
    if (candidate / "schemas").is_dir():
        return candidate
    return Path.cwd()


def load_output_schema() -> dict:
    with open(find_repo_root() / "schemas" / SCHEMA_FILENAME, encoding="utf-8") as f:
        return json.load(f)


def build_tree(ctx: PipelineContext, rng: Optional[random.Random] = None) -> list[TreeNode]:
    start, end = ctx.pages.first_index, ctx.pages.last_index

    log_separator("TOC check")
    toc = check_toc(ctx)

    cascade = meta_processor(ctx, toc, start, end, rng=rng)
    log(f"Accepted mode {cascade.mode.name} with {len(cascade.entries)} entries",
        accuracy=cascade.accuracy)

    log_separator("Tree assembly")
    resolved = [e for e in cascade.entries if e.resolved]
    if len(resolved) < len(cascade.entries):
        log(f"Dropped {len(cascade.entries) - len(resolved)} entries without a page", "WARN")
    entries = add_preface_if_needed(resolved, start)
    entries = check_title_appearance_in_start_concurrent(ctx, entries)
    entries = keep_monotonic(entries)
    tree = post_processing(entries, end)

    log_separator("Node splitting")
    tree = process_tree_recursively(ctx, tree)
    return finalize_ranges(tree, end, start)


def validate_output(result: dict, tree: list[TreeNode], last_index: int) -> None:
    checks = validate_tree(tree, last_index)
    if checks.warnings:
        log(checks.summary(), "DEBUG")
    if not checks.ok:
        raise TreeValidationError(
            f"Tree violates range invariants\n{checks.summary()}", checks.errors)
    try:
        jsonschema.validate(result, load_output_schema())
    except jsonschema.ValidationError as e:
        raise TreeValidationError(f"Output does not match schema: {e.message}", [e.message])


def page_index_main(pages: PageStore, config: PageIndexConfig, call_llm_fn: Callable,
                    rng: Optional[random.Random] = None) -> dict:
    """Build the section tree for one document and return the output mapping."""
    log_separator(f"Document: {pages.doc_name}")
    log(f"{len(pages)} pages, model {config.model}", doc=pages.doc_name)

    with ThreadPoolExecutor(max_workers=config.worker_count()) as executor:
        ctx = PipelineContext(pages=pages, call_llm_fn=call_llm_fn,
                              config=config, executor=executor)
        tree = build_tree(ctx, rng=rng)

        if config.if_add_node_id:
            write_node_ids(tree)
        if config.if_add_node_text or config.if_add_node_summary:
            add_node_text(ctx, tree)
        if config.if_add_node_summary:
            generate_summaries_for_structure(ctx, tree)
        description = None
        if config.if_add_doc_description:
            description = generate_doc_description(ctx, tree)

    if not config.if_add_node_text:
        remove_node_text(tree)

    result: dict = {"doc_name": pages.doc_name}
    if description is not None:
        result["doc_description"] = description
    result["nodes"] = [node.to_dict() for node in tree]

    validate_output(result, tree, pages.last_index)
    log(f"Finished {pages.doc_name}: {sum(1 for _ in walk_forest(tree))} nodes")
    return result


def write_result(result: dict, output_path: str | Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result, f, ensure_ascii=False, indent=2)
    return output_path
