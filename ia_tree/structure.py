"""Derived structure and invariant checks over a node map.

The parent pointer on each node is the only structural field. Edges and the
root set are rebuilt from it in a single pass, and ancestor checks walk the
parent chain so a re-parent can be rejected before it would close a cycle.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

from .types import NodeID, TreeEdge, TreeNode

NodeMap = Mapping[NodeID, TreeNode]


def edge_id(from_id: NodeID, to_id: NodeID) -> str:
    return f"{from_id}->{to_id}"


def resolves(nodes: NodeMap, node_id: Optional[NodeID]) -> bool:
    return node_id is not None and node_id in nodes


def derive_structure(nodes: NodeMap) -> Tuple[Dict[str, TreeEdge], List[NodeID]]:
    edges: Dict[str, TreeEdge] = {}
    roots: List[NodeID] = []
    for node in nodes.values():
        if resolves(nodes, node.parent_id):
            key = edge_id(node.parent_id, node.id)
            edges[key] = TreeEdge(id=key, from_id=node.parent_id, to_id=node.id)
        else:
            roots.append(node.id)
    return edges, roots


def build_children_index(nodes: NodeMap) -> Dict[NodeID, List[TreeNode]]:
    index: Dict[NodeID, List[TreeNode]] = {}
    for node in nodes.values():
        if node.parent_id is None:
            continue
        index.setdefault(node.parent_id, []).append(node)
    return index


def is_ancestor(nodes: NodeMap, ancestor_id: NodeID, node_id: NodeID) -> bool:
    """Return True if ``ancestor_id`` is ``node_id`` or lies on its parent chain."""
    cursor: Optional[NodeID] = node_id
    visited: set[NodeID] = set()
    while cursor is not None:
        if cursor == ancestor_id:
            return True
        if cursor in visited:
            break
        visited.add(cursor)
        node = nodes.get(cursor)
        cursor = node.parent_id if node is not None else None
    return False


def find_cycle_breaks(nodes: NodeMap) -> List[NodeID]:
    """Return one node per parent cycle whose parent link closes that cycle."""
    state: Dict[NodeID, int] = {}
    breaks: List[NodeID] = []
    for start in nodes:
        walk: List[NodeID] = []
        cursor: Optional[NodeID] = start
        while cursor is not None and cursor in nodes and cursor not in state:
            state[cursor] = 1
            walk.append(cursor)
            parent = nodes[cursor].parent_id
            if parent is not None and state.get(parent) == 1:
                breaks.append(cursor)
                break
            cursor = parent
        for node_id in walk:
            state[node_id] = 2
    return breaks


def can_reparent(nodes: NodeMap, parent_id: NodeID, child_id: NodeID) -> bool:
    if parent_id not in nodes or child_id not in nodes or parent_id == child_id:
        return False
    return not is_ancestor(nodes, child_id, parent_id)
