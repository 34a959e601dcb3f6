"""Exceptions raised by the conversation tree engine."""

from __future__ import annotations

from typing import Any


class TreeError(Exception):
    """Base class for conversation tree errors."""


class ParentNotFoundError(TreeError, KeyError):
    """Raised when a turn must be attached to a parent that does not exist."""

    def __init__(self, parent_id: str) -> None:
        self.parent_id = parent_id
        super().__init__(f"Parent node {parent_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class SnapshotError(TreeError, ValueError):
    """Base class for snapshot import failures."""


class UnsupportedVersionError(SnapshotError):
    def __init__(self, version: Any) -> None:
        self.version = version
        super().__init__(f"Unsupported snapshot version: {version}")


class InvalidSnapshotError(SnapshotError):
    pass


class LinearTailError(TreeError, ValueError):
    """Raised when a linear tail would repeat an id or revive a removed one."""

    def __init__(self, node_id: str, reason: str) -> None:
        self.node_id = node_id
        super().__init__(f"Cannot sync turn {node_id}: {reason}")
