"""Conversation tree store for branching, editable chat histories."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from .content import append_text_to_content, coerce_content, coerce_logprobs, coerce_role
from .errors import LinearTailError, ParentNotFoundError
from .paths import build_path_ids, compile_path, resolve_active_id
from .snapshot import export_snapshot, import_snapshot
from .structure import build_children_index, can_reparent, derive_structure
from .types import NODE_STATUSES, NodeID, NodeStatus, TreeEdge, TreeNode, Turn

logger = logging.getLogger(__name__)

_UNSET: Any = object()
_MAX_ID_ATTEMPTS = 32


def _generate_id() -> str:
    return str(uuid4())


def _now_ms() -> int:
    return int(time.time() * 1000)


def _to_turn(raw: Any) -> Turn:
    if isinstance(raw, Turn):
        return raw
    data = dict(raw)
    data["role"] = coerce_role(data.get("role"))
    return Turn.model_validate(data)


class ConversationTree:
    """Map of node id to node with edges and roots derived on every write.

    Each node's ``parent_id`` is the only structural field. Every mutation
    builds a complete next node map and commits it together with freshly
    derived edges and roots, so readers never see stale derived state.
    Mutations on unknown ids are no-ops.
    """

    def __init__(
        self,
        *,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._nodes: Dict[NodeID, TreeNode] = {}
        self._edges: Dict[str, TreeEdge] = {}
        self._roots: List[NodeID] = []
        self._active_target_id: Optional[NodeID] = None
        self._issued_ids: set[NodeID] = set()
        self._last_created_at: float = float("-inf")
        self._id_factory = id_factory or _generate_id
        self._clock = clock or _now_ms

    @property
    def nodes(self) -> Dict[NodeID, TreeNode]:
        return dict(self._nodes)

    @property
    def edges(self) -> Dict[str, TreeEdge]:
        return dict(self._edges)

    @property
    def roots(self) -> List[NodeID]:
        return list(self._roots)

    @property
    def active_target_id(self) -> Optional[NodeID]:
        return self._active_target_id

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def is_empty(self) -> bool:
        return not self._nodes

    def get_node(self, node_id: NodeID) -> Optional[TreeNode]:
        return self._nodes.get(node_id)

    def children_of(self, node_id: NodeID) -> List[TreeNode]:
        children = build_children_index(self._nodes).get(node_id, [])
        return sorted(children, key=lambda node: node.created_at)

    def predecessor_of(self, node_id: NodeID) -> Optional[NodeID]:
        node = self._nodes.get(node_id)
        return node.parent_id if node is not None else None

    def set_active_target(self, node_id: Optional[NodeID]) -> None:
        self._active_target_id = node_id

    # Creation

    def create_system_message(self, text: str) -> NodeID:
        node = TreeNode(
            id=self._new_id(),
            role="system",
            content=text,
            created_at=self._next_timestamp(),
        )
        self._insert(node)
        return node.id

    def create_user_after(self, parent_id: Optional[NodeID], content: Any) -> NodeID:
        safe_parent = parent_id if parent_id is not None and parent_id in self._nodes else None
        if parent_id is not None and safe_parent is None:
            logger.debug("User turn parent %s not found; creating a root", parent_id)
        node = TreeNode(
            id=self._new_id(),
            role="user",
            content=coerce_content(content),
            created_at=self._next_timestamp(),
            parent_id=safe_parent,
        )
        self._insert(node)
        return node.id

    def create_assistant_after(self, parent_id: NodeID) -> NodeID:
        if parent_id not in self._nodes:
            raise ParentNotFoundError(parent_id)
        node = TreeNode(
            id=self._new_id(),
            role="assistant",
            content="",
            created_at=self._next_timestamp(),
            status="draft",
            parent_id=parent_id,
        )
        self._insert(node)
        return node.id

    def clone_node(self, source_id: NodeID) -> Optional[NodeID]:
        source = self._nodes.get(source_id)
        if source is None:
            return None
        clone = source.model_copy(
            update={
                "id": self._new_id(),
                "created_at": self._next_timestamp(),
                "token_logprobs": list(source.token_logprobs) if source.token_logprobs is not None else None,
            }
        )
        self._insert(clone)
        return clone.id

    # Content and status

    def append_to_node(
        self,
        node_id: NodeID,
        *,
        content: Optional[str] = None,
        reasoning: Optional[str] = None,
        token_logprobs: Optional[Sequence[Any]] = None,
    ) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        update: Dict[str, Any] = {}
        if content is not None:
            update["content"] = append_text_to_content(node.content, content)
        if reasoning is not None:
            update["reasoning_content"] = (node.reasoning_content or "") + reasoning
        if token_logprobs:
            update["token_logprobs"] = [*(node.token_logprobs or []), *coerce_logprobs(token_logprobs)]
        if not update:
            return
        self._store(node.model_copy(update=update))

    def set_node_status(self, node_id: NodeID, status: NodeStatus) -> None:
        if status not in NODE_STATUSES:
            raise ValueError(f"Unknown node status: {status}")
        node = self._nodes.get(node_id)
        if node is None:
            return
        self._store(node.model_copy(update={"status": status}))

    def set_node_content(
        self,
        node_id: NodeID,
        content: Any,
        token_logprobs: Optional[Sequence[Any]] = None,
    ) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return
        update = {
            "content": coerce_content(content),
            "token_logprobs": coerce_logprobs(token_logprobs) if token_logprobs is not None else None,
        }
        self._store(node.model_copy(update=update))

    # Structure

    def replace_node_with_edited_clone(
        self,
        node_id: NodeID,
        *,
        content: Any = None,
        reasoning_content: Optional[str] = None,
        token_logprobs: Optional[Sequence[Any]] = None,
    ) -> Optional[NodeID]:
        """Branch an edit off ``node_id`` without touching the original.

        The replacement becomes a sibling of the original, adopts all of its
        children and is marked final. The original keeps its content and
        parent but no longer has children.
        """
        target = self._nodes.get(node_id)
        if target is None:
            return None
        replacement = target.model_copy(
            update={
                "id": self._new_id(),
                "content": coerce_content(content) if content is not None else target.content,
                "reasoning_content": reasoning_content if reasoning_content is not None else target.reasoning_content,
                "token_logprobs": (
                    coerce_logprobs(token_logprobs) if token_logprobs is not None else target.token_logprobs
                ),
                "created_at": self._next_timestamp(),
                "status": "final",
            }
        )
        nodes = dict(self._nodes)
        nodes[replacement.id] = replacement
        for child in self._nodes.values():
            if child.parent_id == node_id:
                nodes[child.id] = child.model_copy(update={"parent_id": replacement.id})
        active = replacement.id if self._active_target_id == node_id else self._active_target_id
        self._commit(nodes, active_target_id=active)
        logger.debug("Edited %s into sibling %s", node_id, replacement.id)
        return replacement.id

    def remove_node(self, node_id: NodeID) -> None:
        target = self._nodes.get(node_id)
        if target is None:
            return
        nodes = dict(self._nodes)
        del nodes[node_id]
        for child in build_children_index(self._nodes).get(node_id, []):
            nodes[child.id] = child.model_copy(update={"parent_id": target.parent_id})
        active = target.parent_id if self._active_target_id == node_id else self._active_target_id
        self._commit(nodes, active_target_id=active)
        logger.debug("Removed %s; children spliced onto %s", node_id, target.parent_id)

    def can_reparent(self, parent_id: NodeID, child_id: NodeID) -> bool:
        return can_reparent(self._nodes, parent_id, child_id)

    def reparent_node(self, target_id: NodeID, new_parent_id: NodeID) -> None:
        if not can_reparent(self._nodes, new_parent_id, target_id):
            logger.debug("Rejected reparent of %s under %s", target_id, new_parent_id)
            return
        target = self._nodes[target_id]
        self._store(target.model_copy(update={"parent_id": new_parent_id}))

    def split_branch(self, child_id: NodeID) -> None:
        target = self._nodes.get(child_id)
        if target is None or target.parent_id is None:
            return
        self._store(target.model_copy(update={"parent_id": None}))

    def sync_linear_tail(self, turns: Sequence[Any]) -> None:
        """Upsert ``turns`` as a single chain, each parented on the previous one.

        Raises ``LinearTailError`` before touching the tree if an id repeats
        within ``turns`` or belongs to a node that was already removed.
        """
        if not turns:
            return
        parsed = [_to_turn(raw) for raw in turns]
        seen: set[NodeID] = set()
        for turn in parsed:
            if turn.id in seen:
                raise LinearTailError(turn.id, "id appears more than once")
            if turn.id in self._issued_ids and turn.id not in self._nodes:
                raise LinearTailError(turn.id, "id belongs to a removed node")
            seen.add(turn.id)

        nodes = dict(self._nodes)
        parent_id: Optional[NodeID] = None
        for turn in parsed:
            existing = nodes.get(turn.id)
            self._issued_ids.add(turn.id)
            nodes[turn.id] = TreeNode(
                id=turn.id,
                role=turn.role,
                content=turn.content,
                reasoning_content=turn.reasoning_content,
                created_at=existing.created_at if existing is not None else self._next_timestamp(),
                status=existing.status if existing is not None else turn.status,
                parent_id=parent_id,
                token_logprobs=(
                    turn.token_logprobs
                    if turn.token_logprobs is not None
                    else (existing.token_logprobs if existing is not None else None)
                ),
            )
            parent_id = turn.id
        self._commit(nodes)

    def reset(self) -> None:
        self._commit({}, active_target_id=None)

    def load(self, nodes: Mapping[NodeID, TreeNode], active_target_id: Optional[NodeID] = None) -> None:
        """Replace the whole node set, e.g. from a decoded snapshot."""
        loaded = dict(nodes)
        self._issued_ids.update(loaded)
        for node in loaded.values():
            self._last_created_at = max(self._last_created_at, node.created_at)
        active = active_target_id if active_target_id is not None and active_target_id in loaded else None
        self._commit(loaded, active_target_id=active)

    # Paths

    def trace_path_ids(self, node_id: NodeID) -> List[NodeID]:
        return build_path_ids(self._nodes, node_id)

    def path_to(self, node_id: NodeID) -> List[Turn]:
        return compile_path(self._nodes, self.trace_path_ids(node_id))

    def active_path_ids(self) -> List[NodeID]:
        tip = resolve_active_id(self._nodes, self._active_target_id)
        return build_path_ids(self._nodes, tip) if tip is not None else []

    def active_path(self) -> List[Turn]:
        return compile_path(self._nodes, self.active_path_ids())

    def active_tail(self) -> Optional[NodeID]:
        path = self.active_path_ids()
        return path[-1] if path else None

    # Snapshots

    def export_snapshot(self) -> Dict[str, Any]:
        return export_snapshot(self)

    def import_snapshot(self, snapshot: Any) -> None:
        import_snapshot(self, snapshot)

    # Internals

    def _new_id(self) -> NodeID:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in self._issued_ids and candidate not in self._nodes:
                self._issued_ids.add(candidate)
                return candidate
        raise RuntimeError("Could not generate a unique node id")

    def _next_timestamp(self) -> float:
        now = self._clock()
        if now <= self._last_created_at:
            now = self._last_created_at + 1
        self._last_created_at = now
        return now

    def _insert(self, node: TreeNode) -> None:
        nodes = dict(self._nodes)
        nodes[node.id] = node
        self._commit(nodes)
        logger.debug("Created %s node %s under %s", node.role, node.id, node.parent_id)

    def _store(self, node: TreeNode) -> None:
        nodes = dict(self._nodes)
        nodes[node.id] = node
        self._commit(nodes)

    def _commit(self, nodes: Dict[NodeID, TreeNode], *, active_target_id: Any = _UNSET) -> None:
        edges, roots = derive_structure(nodes)
        self._nodes = nodes
        self._edges = edges
        self._roots = roots
        if active_target_id is not _UNSET:
            self._active_target_id = active_target_id
