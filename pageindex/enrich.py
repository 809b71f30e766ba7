"""Optional per-node additions: page text, ids, summaries, document description."""

from __future__ import annotations

from pageindex import prompts
from pageindex.context import PipelineContext
from pageindex.log import log
from pageindex.models import TreeNode, walk_forest


def add_node_text(ctx: PipelineContext, tree: list[TreeNode]) -> None:
    for node in walk_forest(tree):
        node.text = ctx.pages.text_of(node.start_index, node.end_index)


def remove_node_text(tree: list[TreeNode]) -> None:
    for node in walk_forest(tree):
        node.text = None


def write_node_ids(tree: list[TreeNode], start: int = 0) -> int:
    """Zero-padded pre-order ids ("0000", "0001", ...). Returns the next free id."""
    next_id = start
    for node in walk_forest(tree):
        node.node_id = f"{next_id:04d}"
        next_id += 1
    return next_id


def generate_node_summary(ctx: PipelineContext, node: TreeNode) -> str:
    text = node.text if node.text is not None else ctx.pages.text_of(node.start_index, node.end_index)
    if not text.strip():
        log(f"No text for '{node.title}', skipping summary", "DEBUG")
        return ""
    return ctx.ask(prompts.node_summary(text)).strip()


def generate_summaries_for_structure(ctx: PipelineContext, tree: list[TreeNode]) -> None:
    nodes = list(walk_forest(tree))
    log(f"Generating summaries for {len(nodes)} nodes")
    summaries = ctx.fork_join(lambda n: generate_node_summary(ctx, n), nodes)
    for node, summary in zip(nodes, summaries):
        node.summary = summary


def _outline(nodes: list[TreeNode], indent: int = 0) -> list[str]:
    lines = []
    for node in nodes:
        lines.append(f"{'  ' * indent}- {node.title} (pages {node.start_index}-{node.end_index})")
        lines.extend(_outline(node.children, indent + 1))
    return lines


def generate_doc_description(ctx: PipelineContext, tree: list[TreeNode]) -> str:
    if not tree:
        return ""
    return ctx.ask(prompts.doc_description("\n".join(_outline(tree)))).strip()
