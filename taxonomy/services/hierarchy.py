"""Pure helpers for the materialized-path category tree.

Nothing in this module touches the database. It covers:
- identifier validation and generation
- position (level/path) calculation for a node under a parent
- cycle detection for moves
- prefix rewriting for descendants
- assembling a flat node list into a nested tree
"""

import random
import re
import string
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from taxonomy.core.exceptions import InvalidIdentifierError

PATH_SEPARATOR = "/"
ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

_ID_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


class PositionedNode(Protocol):
    """Anything carrying a tree position (a Category row or a NodePosition)."""

    level: int
    path: str


@dataclass(frozen=True)
class NodePosition:
    """Depth and materialized path of a node."""

    level: int
    path: str

    def __post_init__(self):
        if self.level < 1:
            raise ValueError("level must be >= 1")
        if not self.path.startswith(PATH_SEPARATOR):
            raise ValueError("path must start with '/'")


def validate_identifier(value: str) -> str:
    """Return ``value`` unchanged if it is a well-formed category id.

    Ids become path segments, so they must never contain the separator.

    Raises:
        InvalidIdentifierError: if the id is empty, too long or contains
            characters outside ``[A-Za-z0-9_-]``
    """
    if not isinstance(value, str) or not ID_PATTERN.match(value):
        raise InvalidIdentifierError(str(value))
    return value


def generate_category_id(prefix: str = "C") -> str:
    """Generate a new category id: prefix + epoch millis + 3 random chars.

    Example: ``C1718000000000X7Q``
    """
    suffix = "".join(random.choices(_ID_SUFFIX_ALPHABET, k=3))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def compute_position(category_id: str, parent: Optional[PositionedNode] = None) -> NodePosition:
    """Compute the (level, path) of ``category_id`` placed under ``parent``.

    Roots (no parent) get level 1 and path ``/<id>``; anything else goes one
    level below its parent with the parent's path as prefix.
    """
    if parent is None:
        return NodePosition(level=1, path=f"{PATH_SEPARATOR}{category_id}")
    return NodePosition(
        level=parent.level + 1,
        path=f"{parent.path}{PATH_SEPARATOR}{category_id}",
    )


def path_segments(path: str) -> List[str]:
    """Split a materialized path into its ids, root first."""
    return [segment for segment in path.split(PATH_SEPARATOR) if segment]


def level_of(path: str) -> int:
    """Depth encoded by a path (number of segments)."""
    return len(path_segments(path))


def is_descendant_path(path: str, ancestor_path: str) -> bool:
    """True if ``path`` lies strictly below ``ancestor_path``."""
    return path.startswith(ancestor_path + PATH_SEPARATOR)


def would_create_cycle(source_id: str, source_path: str, target_parent_path: str) -> bool:
    """Check whether moving ``source_id`` under the target parent is illegal.

    A move is illegal when the target parent is the source itself or any of
    its descendants, i.e. the source id already appears in the target's path.
    """
    if target_parent_path == source_path or is_descendant_path(target_parent_path, source_path):
        return True
    return source_id in path_segments(target_parent_path)


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the ``old_prefix`` part of a descendant path with ``new_prefix``.

    Raises:
        ValueError: if ``path`` is not strictly below ``old_prefix``
    """
    if not is_descendant_path(path, old_prefix):
        raise ValueError(f"{path!r} is not below {old_prefix!r}")
    return new_prefix + path[len(old_prefix):]


# ---------------------------------------------------------------------------
# Tree assembly
# ---------------------------------------------------------------------------

TREE_FIELDS = (
    "category_id",
    "name",
    "parent_id",
    "description",
    "sort_order",
    "level",
    "path",
    "material_count",
    "status",
)


def project_node(node: Any) -> Dict[str, Any]:
    """Default projection of a category row into a tree node dict."""
    return {name: getattr(node, name) for name in TREE_FIELDS}


@dataclass
class TreeAssembly:
    """Result of assembling a flat node list.

    ``roots`` is the forest. ``orphans`` holds nodes that cannot hang off a
    root, each with its own subtree attached, so they are never silently
    lost:
    - the parent is not in the input (dangling or filtered-out parent)
    - the node sits on a parent cycle (``cycle_ids`` lists those nodes)
    """

    roots: List[Dict[str, Any]] = field(default_factory=list)
    orphans: List[Dict[str, Any]] = field(default_factory=list)
    cycle_ids: List[str] = field(default_factory=list)

    @property
    def orphan_ids(self) -> List[str]:
        return [node["category_id"] for node in self.orphans]


def find_parent_cycles(parents: Dict[str, Optional[str]]) -> Set[str]:
    """Ids that lie on a loop of ``parent_id`` links.

    Each id is walked at most once: a walk stops at a root, at a parent
    outside ``parents``, or at an id already resolved by an earlier walk.
    """
    resolved: Set[str] = set()
    on_cycle: Set[str] = set()

    for start in parents:
        chain: List[str] = []
        position: Dict[str, int] = {}
        current: Optional[str] = start
        while current is not None and current in parents and current not in resolved:
            if current in position:
                on_cycle.update(chain[position[current]:])
                break
            position[current] = len(chain)
            chain.append(current)
            current = parents[current]
        resolved.update(chain)

    return on_cycle


def build_tree(
    nodes: Iterable[Any],
    project: Callable[[Any], Dict[str, Any]] = project_node,
) -> TreeAssembly:
    """Turn a flat list of categories into a nested forest.

    Linear passes: one to index every node by id, one to find parent
    cycles, one to attach each node to its parent's ``children`` list.
    Siblings end up ordered by ``sort_order`` because nodes are linked in
    ``(level, sort_order)`` order. A node on a cycle is never attached to its
    parent, so the output stays a finite forest.
    """
    ordered = sorted(nodes, key=lambda n: (n.level, n.sort_order))

    by_id: Dict[str, Dict[str, Any]] = {}
    for node in ordered:
        item = project(node)
        item["children"] = []
        by_id[node.category_id] = item

    on_cycle = find_parent_cycles({node.category_id: node.parent_id for node in ordered})

    assembly = TreeAssembly()
    for node in ordered:
        item = by_id[node.category_id]
        parent_id = node.parent_id
        if parent_id is None:
            assembly.roots.append(item)
        elif node.category_id not in on_cycle and parent_id in by_id:
            by_id[parent_id]["children"].append(item)
        else:
            assembly.orphans.append(item)
            if node.category_id in on_cycle:
                assembly.cycle_ids.append(node.category_id)

    return assembly
