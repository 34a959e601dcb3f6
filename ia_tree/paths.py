"""Linear path compilation from the parent-pointer graph."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .structure import NodeMap, build_children_index
from .types import NodeID, TreeNode, Turn


def build_path_ids(nodes: NodeMap, target: NodeID) -> List[NodeID]:
    if target not in nodes:
        return []
    path: List[NodeID] = []
    visited: set[NodeID] = set()
    cursor: Optional[NodeID] = target
    while cursor is not None:
        if cursor not in nodes or cursor in visited:
            break
        visited.add(cursor)
        path.append(cursor)
        cursor = nodes[cursor].parent_id
    path.reverse()
    return path


def pick_newest_node(candidates: Iterable[TreeNode]) -> Optional[TreeNode]:
    latest: Optional[TreeNode] = None
    for node in candidates:
        if latest is None or node.created_at > latest.created_at:
            latest = node
    return latest


def pick_newest_leaf_id(nodes: NodeMap) -> Optional[NodeID]:
    if not nodes:
        return None
    children = build_children_index(nodes)
    leaves = [node for node in nodes.values() if not children.get(node.id)]
    newest = pick_newest_node(leaves or nodes.values())
    return newest.id if newest is not None else None


def resolve_active_id(nodes: NodeMap, active_target_id: Optional[NodeID]) -> Optional[NodeID]:
    if active_target_id is not None and active_target_id in nodes:
        return active_target_id
    return pick_newest_leaf_id(nodes)


def to_turn(node: TreeNode) -> Turn:
    return Turn(
        id=node.id,
        role=node.role,
        content=node.content,
        reasoning_content=node.reasoning_content,
        status=node.status,
        token_logprobs=list(node.token_logprobs) if node.token_logprobs is not None else None,
    )


def compile_path(nodes: NodeMap, path_ids: Iterable[NodeID]) -> List[Turn]:
    return [to_turn(nodes[node_id]) for node_id in path_ids if node_id in nodes]
