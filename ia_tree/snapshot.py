"""Versioned JSON snapshots of a conversation tree.

Only the node map and the active pointer are written. Edges and roots are
derived state and are rebuilt on import; a ``roots`` or ``edges`` list left
in an older file is ignored.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from .content import coerce_role
from .errors import InvalidSnapshotError, UnsupportedVersionError
from .structure import find_cycle_breaks
from .types import NODE_STATUSES, NodeID, TreeNode

if TYPE_CHECKING:
    from .tree import ConversationTree

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 2
SNAPSHOT_FILE_PREFIX = "iaslate_tree_"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def node_to_wire(node: TreeNode) -> Dict[str, Any]:
    data = node.model_dump(by_alias=True, exclude_none=True)
    data["parentId"] = node.parent_id
    return data


def export_snapshot(tree: "ConversationTree") -> Dict[str, Any]:
    snapshot: Dict[str, Any] = {
        "version": SNAPSHOT_VERSION,
        "exportedAt": _now_iso(),
        "tree": {
            "nodes": {node_id: node_to_wire(node) for node_id, node in tree.nodes.items()},
        },
    }
    if tree.active_target_id is not None:
        snapshot["activeTargetId"] = tree.active_target_id
    return snapshot


def _decode_node(node_id: NodeID, raw: Any, raw_nodes: Mapping[str, Any]) -> TreeNode:
    if not isinstance(raw, Mapping):
        raise InvalidSnapshotError(f"Node {node_id} is not an object")

    created_at = raw.get("createdAt")
    if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
        created_at = int(time.time() * 1000)

    parent_id = raw.get("parentId")
    if parent_id is not None and (not isinstance(parent_id, str) or parent_id not in raw_nodes):
        logger.warning("Snapshot node %s references missing parent %s; treating it as a root", node_id, parent_id)
        parent_id = None

    status = raw.get("status")
    if status not in NODE_STATUSES:
        status = None

    content = raw.get("content")
    try:
        return TreeNode.model_validate(
            {
                "id": node_id,
                "role": coerce_role(raw.get("role")),
                "content": "" if content is None else content,
                "reasoningContent": raw.get("reasoningContent"),
                "createdAt": created_at,
                "status": status,
                "parentId": parent_id,
                "tokenLogprobs": raw.get("tokenLogprobs"),
            }
        )
    except ValidationError as exc:
        raise InvalidSnapshotError(f"Invalid node {node_id}: {exc}") from exc


def decode_nodes(raw_nodes: Mapping[str, Any]) -> Dict[NodeID, TreeNode]:
    nodes = {str(node_id): _decode_node(str(node_id), raw, raw_nodes) for node_id, raw in raw_nodes.items()}
    for node_id in find_cycle_breaks(nodes):
        logger.warning("Snapshot node %s closes a parent cycle; treating it as a root", node_id)
        nodes[node_id] = nodes[node_id].model_copy(update={"parent_id": None})
    return nodes


def parse_snapshot(snapshot: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(snapshot, (str, bytes)):
        try:
            snapshot = json.loads(snapshot)
        except json.JSONDecodeError as exc:
            raise InvalidSnapshotError(f"Snapshot is not valid JSON: {exc}") from exc
    if not isinstance(snapshot, Mapping):
        raise InvalidSnapshotError("Snapshot must be a JSON object")
    version = snapshot.get("version")
    if isinstance(version, bool) or version != SNAPSHOT_VERSION:
        raise UnsupportedVersionError(version)
    return snapshot


def import_snapshot(tree: "ConversationTree", snapshot: Union[str, bytes, Mapping[str, Any]]) -> None:
    """Replace ``tree`` with the snapshot contents.

    Raises ``UnsupportedVersionError`` for any version other than the current
    one and ``InvalidSnapshotError`` for malformed payloads. Both are raised
    before the tree is touched.
    """
    data = parse_snapshot(snapshot)
    tree_data = data.get("tree")
    if tree_data is None:
        tree_data = {}
    if not isinstance(tree_data, Mapping):
        raise InvalidSnapshotError("Snapshot tree must be an object")
    raw_nodes = tree_data.get("nodes")
    if raw_nodes is None:
        raw_nodes = {}
    if not isinstance(raw_nodes, Mapping):
        raise InvalidSnapshotError("Snapshot nodes must be an object")

    nodes = decode_nodes(raw_nodes)
    active_target_id: Optional[NodeID] = data.get("activeTargetId")
    if active_target_id is not None and (not isinstance(active_target_id, str) or active_target_id not in nodes):
        logger.warning("Snapshot active target %s not found; leaving it unset", active_target_id)
        active_target_id = None

    tree.load(nodes, active_target_id)
    logger.debug("Imported snapshot with %d nodes", len(nodes))


def snapshot_filename(exported_at: str) -> str:
    return f"{SNAPSHOT_FILE_PREFIX}{exported_at.replace(':', '-')}.json"


def write_snapshot_file(snapshot: Mapping[str, Any], directory: Union[str, Path]) -> Path:
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    exported_at = str(snapshot.get("exportedAt") or _now_iso())
    path = target_dir / snapshot_filename(exported_at)
    path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
    return path


def read_snapshot_file(path: Union[str, Path]) -> Mapping[str, Any]:
    text = Path(path).read_text(encoding="utf-8")
    return parse_snapshot(text)
