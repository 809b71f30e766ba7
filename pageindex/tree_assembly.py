"""Flat resolved entries to a nested section tree, plus range checks.

Page boundaries: an entry ends on the page before the next entry when the
next entry begins at the top of its page (``appear_start == "yes"``),
otherwise on the next entry's start page, which the two then share. The
last entry ends on the range end handed in by the caller.
"""

from __future__ import annotations

from pageindex.log import log
from pageindex.models import APPEAR_YES, Entry, TreeNode


# ---------------------------------------------------------------------------
# Pre-assembly cleanup
# ---------------------------------------------------------------------------

def keep_monotonic(entries: list[Entry]) -> list[Entry]:
    """Drop entries whose index goes backwards; assembly needs document order."""
    kept: list[Entry] = []
    for e in entries:
        if kept and e.physical_index < kept[-1].physical_index:
            log(f"Dropping '{e.title}': page {e.physical_index} precedes "
                f"'{kept[-1].title}' on page {kept[-1].physical_index}", "WARN")
            continue
        kept.append(e)
    return kept


def add_preface_if_needed(entries: list[Entry], first_index: int = 1) -> list[Entry]:
    """Cover the pages before the first section with a synthetic Preface."""
    if entries and entries[0].physical_index is not None and entries[0].physical_index > first_index:
        return [Entry(title="Preface", structure="0", physical_index=first_index)] + entries
    return entries


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def compute_end_indices(entries: list[Entry], end_index: int) -> list[tuple[Entry, int]]:
    spans = []
    for i, e in enumerate(entries):
        if i + 1 < len(entries):
            nxt = entries[i + 1]
            end = nxt.physical_index - 1 if nxt.appear_start == APPEAR_YES else nxt.physical_index
        else:
            end = end_index
        spans.append((e, end))
    return spans


def parent_structure(structure: str | None) -> str | None:
    """"1.2.3" -> "1.2"; top-level and missing codes have no parent."""
    if not structure:
        return None
    parts = structure.split(".")
    if len(parts) < 2:
        return None
    return ".".join(parts[:-1])


def list_to_tree(spans: list[tuple[Entry, int]]) -> list[TreeNode]:
    """Nest nodes by structure code, keeping flat-list order under each parent.

    A node attaches to the parent whose code is its own minus the last
    segment, looked up among the currently open ancestors. Without such a
    parent it becomes a root. A parent that was already closed by a later
    sibling (codes 1, 2, 1.2) is not reopened, so ranges cannot interleave.
    """
    roots: list[TreeNode] = []
    open_path: list[tuple[str | None, TreeNode]] = []
    for entry, end in spans:
        node = TreeNode(title=entry.title, start_index=entry.physical_index, end_index=end)
        wanted = parent_structure(entry.structure)
        depth = None
        if wanted is not None:
            depth = next((i for i in range(len(open_path) - 1, -1, -1)
                          if open_path[i][0] == wanted), None)
        if depth is not None:
            open_path[depth][1].children.append(node)
            del open_path[depth + 1:]
        else:
            roots.append(node)
            open_path.clear()
        open_path.append((entry.structure, node))
    return roots


def post_processing(entries: list[Entry], end_index: int) -> list[TreeNode]:
    """Resolved, ordered entries to a tree over ``..end_index``."""
    if not entries:
        return []
    tree = list_to_tree(compute_end_indices(entries, end_index))
    log(f"Assembled {len(entries)} entries into {len(tree)} top-level nodes", "DEBUG")
    return tree


def finalize_ranges(nodes: list[TreeNode], last_index: int, first_index: int = 1) -> list[TreeNode]:
    """Clamp every range into the document and grow parents over their children."""
    for node in nodes:
        finalize_ranges(node.children, last_index, first_index)
        node.start_index = max(first_index, min(node.start_index, last_index))
        node.end_index = max(node.start_index, min(node.end_index, last_index))
        if node.children:
            node.end_index = max(node.end_index, max(c.end_index for c in node.children))
    return nodes


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationResult:
    def __init__(self):
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str):
        self.errors.append(msg)

    def warn(self, msg: str):
        self.warnings.append(msg)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not self.errors and not self.warnings:
            lines.append("✓ All checks passed")
        elif not self.errors:
            lines.append(f"✓ No errors ({len(self.warnings)} warnings)")
        return "\n".join(lines)


def _validate_level(nodes: list[TreeNode], last_index: int, result: ValidationResult,
                    parent: TreeNode | None = None):
    prev = None
    for node in nodes:
        where = f"'{node.title}' [{node.start_index}-{node.end_index}]"
        if not (1 <= node.start_index <= node.end_index <= last_index):
            result.error(f"{where}: range outside 1..{last_index} or reversed")
        if parent is not None and not (
                parent.start_index <= node.start_index and node.end_index <= parent.end_index):
            result.error(f"{where}: not inside parent '{parent.title}' "
                         f"[{parent.start_index}-{parent.end_index}]")
        if prev is not None:
            if node.start_index < prev.start_index:
                result.error(f"{where}: starts before previous sibling '{prev.title}'")
            elif prev.end_index > node.start_index:
                result.error(f"{where}: overlaps previous sibling '{prev.title}' "
                             f"ending on page {prev.end_index}")
            elif prev.end_index == node.start_index:
                result.warn(f"{where}: shares page {node.start_index} with '{prev.title}'")
        if not node.title.strip():
            result.warn(f"Untitled node at page {node.start_index}")
        _validate_level(node.children, last_index, result, node)
        prev = node


def validate_tree(nodes: list[TreeNode], last_index: int) -> ValidationResult:
    """Range invariants: bounds, containment in the parent, sibling order.

    Siblings may share their boundary page; that is reported as a warning.
    """
    result = ValidationResult()
    if not nodes:
        result.error("Tree has no nodes")
    _validate_level(nodes, last_index, result)
    return result
