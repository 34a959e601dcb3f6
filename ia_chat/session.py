"""Chat session controller driving the conversation tree."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ia_ai.config import DEFAULT_SYSTEM_PROMPT
from ia_ai.types import StreamFn
from ia_tree.content import coerce_content, has_message_content
from ia_tree.snapshot import read_snapshot_file, write_snapshot_file
from ia_tree.tree import ConversationTree
from ia_tree.types import NodeID, Turn

from .stream_manager import StreamManager

logger = logging.getLogger(__name__)


class ChatSession:
    """Caller-side state around one conversation tree.

    The session owns the active-thread bookkeeping, the edit cursor and the
    abort tokens of in-flight streams. All structural changes go through the
    tree's mutation methods.
    """

    def __init__(
        self,
        tree: ConversationTree,
        stream_fn: StreamFn,
        *,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        stream_manager: Optional[StreamManager] = None,
    ) -> None:
        self._tree = tree
        self._stream_fn = stream_fn
        self._default_system_prompt = default_system_prompt
        self._streams = stream_manager or StreamManager()
        self._editing_node_id: Optional[NodeID] = None
        self._is_generating = False

    @property
    def tree(self) -> ConversationTree:
        return self._tree

    @property
    def stream_manager(self) -> StreamManager:
        return self._streams

    @property
    def editing_node_id(self) -> Optional[NodeID]:
        return self._editing_node_id

    @property
    def is_generating(self) -> bool:
        return self._is_generating

    @property
    def messages(self) -> List[Turn]:
        return self._tree.active_path()

    def ensure_system_message(self) -> Optional[NodeID]:
        if not self._tree.is_empty():
            return None
        system_id = self._tree.create_system_message(self._default_system_prompt)
        self._tree.set_active_target(system_id)
        return system_id

    async def send(self, prompt_content: Any = "") -> NodeID:
        """Grow the active thread and stream an assistant reply into it.

        Empty prompts continue the trailing assistant turn when there is one.
        Returns the id of the assistant node that received the stream.
        """
        content = coerce_content(prompt_content)
        has_content = has_message_content(content)

        parent_id = self._tree.active_tail()
        if parent_id is None:
            parent_id = self._tree.create_system_message(self._default_system_prompt)
        if has_content:
            parent_id = self._tree.create_user_after(parent_id, content)

        context = self._tree.path_to(parent_id)
        last = context[-1] if context else None
        if not has_content and last is not None and last.role == "assistant":
            assistant_id = last.id
        else:
            assistant_id = self._tree.create_assistant_after(parent_id)

        self._tree.set_node_status(assistant_id, "streaming")
        self._tree.set_active_target(assistant_id)
        token = self._streams.register(assistant_id)
        self._is_generating = True
        logger.info("Streaming into %s with %d context turns", assistant_id, len(context))

        stream = None
        try:
            stream = self._stream_fn(context, token)
            async for chunk in stream:
                if token.is_set():
                    break
                self._tree.append_to_node(
                    assistant_id,
                    content=chunk.content,
                    reasoning=chunk.reasoning,
                    token_logprobs=chunk.token_logprobs or None,
                )
        except asyncio.CancelledError:
            self._tree.set_node_status(assistant_id, "draft")
            raise
        except Exception:
            if token.is_set():
                self._tree.set_node_status(assistant_id, "draft")
                return assistant_id
            self._tree.set_node_status(assistant_id, "error")
            logger.exception("Stream for %s failed", assistant_id)
            raise
        else:
            self._tree.set_node_status(assistant_id, "draft" if token.is_set() else "final")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            self._streams.release(assistant_id, token)
            self._streams.clear_latest_if(assistant_id)
            self._is_generating = bool(self._streams.active_ids())
        return assistant_id

    def stop(self) -> None:
        self._streams.abort_all()
        self._is_generating = False

    def delete_message(self, node_id: NodeID) -> None:
        self._streams.abort(node_id)
        self._is_generating = bool(self._streams.active_ids())
        self._tree.remove_node(node_id)
        if self._editing_node_id == node_id:
            self.cancel_edit()
        tail = self._tree.active_tail()
        if tail is not None:
            self._tree.set_active_target(tail)
        elif self._tree.is_empty():
            self._tree.set_active_target(self._tree.create_system_message(self._default_system_prompt))
        else:
            self._tree.set_active_target(None)

    def detach_message(self, node_id: NodeID) -> None:
        previous = self._tree.predecessor_of(node_id)
        if previous is None:
            return
        if self._editing_node_id == node_id:
            self.cancel_edit()
        self._tree.set_active_target(previous)

    def connect(self, parent_id: NodeID, child_id: NodeID) -> bool:
        if not self._tree.can_reparent(parent_id, child_id):
            return False
        self._tree.reparent_node(child_id, parent_id)
        return True

    def disconnect(self, child_id: NodeID) -> None:
        self._tree.split_branch(child_id)

    def start_edit(self, node_id: NodeID) -> None:
        if node_id not in self._tree:
            return
        if self._editing_node_id is not None and self._editing_node_id != node_id:
            self.cancel_edit()
        self._tree.set_node_status(node_id, "draft")
        self._editing_node_id = node_id

    def submit_edit(self, node_id: NodeID, content: Any) -> Optional[NodeID]:
        was_active = self._tree.active_target_id == node_id
        replacement_id = self._tree.replace_node_with_edited_clone(node_id, content=content)
        if replacement_id is None:
            return None
        if was_active:
            self._tree.set_active_target(replacement_id)
        self.cancel_edit()
        return replacement_id

    def cancel_edit(self) -> None:
        if self._editing_node_id is not None:
            self._tree.set_node_status(self._editing_node_id, "final")
        self._editing_node_id = None

    def duplicate(self, node_id: NodeID) -> Optional[NodeID]:
        return self._tree.clone_node(node_id)

    def activate_thread(self, target_id: Optional[NodeID]) -> None:
        if target_id is None:
            return
        self._tree.set_active_target(target_id)
        self.cancel_edit()
        self._is_generating = False

    def clear_conversation(self) -> NodeID:
        self.stop()
        self.cancel_edit()
        self._tree.reset()
        system_id = self._tree.create_system_message(self._default_system_prompt)
        self._tree.set_active_target(system_id)
        return system_id

    def export_snapshot(self) -> Dict[str, Any]:
        return self._tree.export_snapshot()

    def import_snapshot(self, snapshot: Union[str, bytes, Mapping[str, Any]]) -> None:
        self._tree.import_snapshot(snapshot)
        self.stop()
        self._editing_node_id = None

    def save_snapshot(self, directory: Union[str, Path]) -> Path:
        path = write_snapshot_file(self.export_snapshot(), directory)
        logger.info("Exported conversation to %s", path)
        return path

    def load_snapshot(self, path: Union[str, Path]) -> None:
        self.import_snapshot(read_snapshot_file(path))
        logger.info("Imported conversation from %s", path)
