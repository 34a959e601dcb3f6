"""Conversation tree engine for iaslate."""

from .errors import (
    InvalidSnapshotError,
    LinearTailError,
    ParentNotFoundError,
    SnapshotError,
    TreeError,
    UnsupportedVersionError,
)
from .snapshot import (
    SNAPSHOT_VERSION,
    export_snapshot,
    import_snapshot,
    read_snapshot_file,
    snapshot_filename,
    write_snapshot_file,
)
from .tree import ConversationTree
from .types import (
    ContentPart,
    ImagePart,
    MessageContent,
    NodeStatus,
    Role,
    TextPart,
    TokenAlternative,
    TokenLogprob,
    TreeEdge,
    TreeNode,
    Turn,
)

__all__ = [
    "SNAPSHOT_VERSION",
    "ContentPart",
    "ConversationTree",
    "ImagePart",
    "InvalidSnapshotError",
    "LinearTailError",
    "MessageContent",
    "NodeStatus",
    "ParentNotFoundError",
    "Role",
    "SnapshotError",
    "TextPart",
    "TokenAlternative",
    "TokenLogprob",
    "TreeEdge",
    "TreeError",
    "TreeNode",
    "Turn",
    "UnsupportedVersionError",
    "export_snapshot",
    "import_snapshot",
    "read_snapshot_file",
    "snapshot_filename",
    "write_snapshot_file",
]
