"""
Category tree built from "/"-delimited category paths
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .config import DATASET_ID_PREFIX


@dataclass
class CategoryNode:
    id: str
    name: str
    level: int
    children: List["CategoryNode"] = field(default_factory=list)
    dataset_id: Optional[str] = None

    @property
    def is_leaf(self) -> bool:
        return self.dataset_id is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "children": [child.to_dict() for child in self.children],
        }
        if self.dataset_id is not None:
            data["datasetId"] = self.dataset_id
        return data


def split_path(path: str) -> List[str]:
    return [segment.strip() for segment in str(path).split("/") if segment.strip()]


def dataset_id_for(path: str) -> str:
    return DATASET_ID_PREFIX + str(path).strip()


def dataset_path(dataset_id: str) -> str:
    """Category path carried by a leaf's dataset id."""
    if dataset_id.startswith(DATASET_ID_PREFIX):
        return dataset_id[len(DATASET_ID_PREFIX):]
    return dataset_id


def build_tree(paths: Iterable[str]) -> List[CategoryNode]:
    """
    Nest category paths into a tree

    Nodes are keyed by (depth, path so far), so shared prefixes collapse into
    one node. Children keep first-seen order. The node for a path's last
    segment gets dataset_id "ds:<path>".
    """
    roots: List[CategoryNode] = []
    nodes: Dict[Tuple[int, str], CategoryNode] = {}

    for path in paths:
        segments = split_path(path)
        siblings = roots
        for depth, segment in enumerate(segments):
            key = "/".join(segments[:depth + 1])
            node = nodes.get((depth, key))
            if node is None:
                node = CategoryNode(id=f"{depth}:{key}", name=segment, level=depth)
                nodes[(depth, key)] = node
                siblings.append(node)
            if depth == len(segments) - 1 and node.dataset_id is None:
                node.dataset_id = dataset_id_for(path)
            siblings = node.children

    return roots


def iter_leaves(nodes: Iterable[CategoryNode],
                breadcrumb: Tuple[str, ...] = ()) -> Iterator[Tuple[Tuple[str, ...], CategoryNode]]:
    """Depth-first (breadcrumb, leaf) pairs."""
    for node in nodes:
        trail = breadcrumb + (node.name,)
        if node.is_leaf:
            yield trail, node
        yield from iter_leaves(node.children, trail)


def find_leaf(nodes: Iterable[CategoryNode], dataset_id: str) -> Optional[CategoryNode]:
    for _, leaf in iter_leaves(nodes):
        if leaf.dataset_id == dataset_id:
            return leaf
    return None


def filter_tree(nodes: List[CategoryNode], query: str) -> List[CategoryNode]:
    """
    Keep nodes whose name contains query (case-insensitive) or that have a
    matching descendant. Returns copies; the input tree is left untouched.
    """
    query = (query or "").strip().lower()
    if not query:
        return nodes

    kept = []
    for node in nodes:
        children = filter_tree(node.children, query)
        if query in node.name.lower() or children:
            kept.append(replace(node, children=children or node.children))
    return kept
