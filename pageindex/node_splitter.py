"""Recursively subdivide nodes that are too large.

A node is split when its page span (end - start) exceeds
``max_page_num_each_node`` and its pages hold at least
``max_token_num_each_node`` tokens. Splitting regenerates a structure for
exactly the node's pages and swaps in a new children list; the node object
itself is kept.
"""

from __future__ import annotations

from pageindex.context import PipelineContext
from pageindex.index_resolver import process_no_toc
from pageindex.log import log
from pageindex.models import TreeNode
from pageindex.tree_assembly import keep_monotonic, post_processing
from pageindex.verifier import check_title_appearance_in_start_concurrent


def needs_split(ctx: PipelineContext, node: TreeNode) -> bool:
    if node.page_span <= ctx.config.max_page_num_each_node:
        return False
    tokens = ctx.pages.token_sum(node.start_index, node.end_index)
    return tokens >= ctx.config.max_token_num_each_node


def split_node(ctx: PipelineContext, node: TreeNode) -> None:
    """Replace ``node.children`` with a generated sub-structure of its pages."""
    log(f"Splitting '{node.title}' (pages {node.start_index}-{node.end_index})")
    entries = process_no_toc(ctx, node.start_index, node.end_index)
    entries = check_title_appearance_in_start_concurrent(ctx, entries)
    entries = [e for e in entries
               if e.resolved and node.start_index <= e.physical_index <= node.end_index]
    entries = keep_monotonic(entries)
    if not entries:
        log(f"No sub-structure found for '{node.title}'", "DEBUG")
        return

    if entries[0].title.strip() == node.title.strip() and len(entries) > 1:
        children = post_processing(entries[1:], node.end_index)
        node.end_index = entries[1].physical_index
    else:
        children = post_processing(entries, node.end_index)
        node.end_index = entries[0].physical_index
    node.children = children
    log(f"'{node.title}' split into {len(children)} children", "DEBUG")


def process_large_node_recursively(ctx: PipelineContext, node: TreeNode, depth: int = 0) -> TreeNode:
    children = node.children
    if needs_split(ctx, node):
        if depth >= ctx.config.max_split_depth:
            log(f"Split depth {depth} reached at '{node.title}', not descending further", "WARN")
            return node
        parent_span = node.page_span
        split_node(ctx, node)
        # children covering the whole parent are not descended into
        children = [c for c in node.children if c.page_span < parent_span]
        if len(children) < len(node.children):
            log(f"Not descending into {len(node.children) - len(children)} children "
                f"of '{node.title}' that cover its whole span", "DEBUG")
    ctx.fork_join(lambda c: process_large_node_recursively(ctx, c, depth + 1), children)
    return node


def process_tree_recursively(ctx: PipelineContext, tree: list[TreeNode]) -> list[TreeNode]:
    return ctx.fork_join(lambda n: process_large_node_recursively(ctx, n), tree)
