import asyncio

import pytest

from ia_ai.openai_compatible import StreamAbortedError
from ia_ai.types import StreamChunk
from ia_chat import ChatSession
from ia_tree.types import TextPart
from tests.chat.helpers import ScriptedStream, text
from tests.tree.helpers import make_tree


def _session(stream_fn, prompt="sys"):
    session = ChatSession(make_tree(), stream_fn, default_system_prompt=prompt)
    session.ensure_system_message()
    return session


@pytest.mark.asyncio
async def test_send_streams_reply_into_new_assistant_turn():
    stream = ScriptedStream(*text("Hel", "lo"))
    session = _session(stream)

    assistant_id = await session.send("hi")

    assert [(turn.role, turn.content, turn.status) for turn in session.messages] == [
        ("system", "sys", None),
        ("user", "hi", None),
        ("assistant", "Hello", "final"),
    ]
    assert session.tree.active_target_id == assistant_id
    assert [turn.role for turn in stream.calls[0]] == ["system", "user"]
    assert session.is_generating is False
    assert not session.stream_manager.is_streaming(assistant_id)
    assert session.stream_manager.latest is None


@pytest.mark.asyncio
async def test_send_accepts_structured_content():
    stream = ScriptedStream(*text("A cat"))
    session = _session(stream)

    await session.send(
        [
            {"type": "text", "text": "what is this"},
            {"type": "image", "image": "data:image/png;base64,AAA"},
        ]
    )

    user_turn = session.messages[1]
    assert user_turn.content[0] == TextPart(text="what is this")
    assert user_turn.content[1].type == "image"


@pytest.mark.asyncio
async def test_empty_prompt_continues_trailing_assistant():
    stream = ScriptedStream(*text("Once"))
    session = _session(stream)
    first_id = await session.send("tell a story")

    stream.chunks = text(" upon a time")
    second_id = await session.send("")

    assert second_id == first_id
    assert session.tree.get_node(first_id).content == "Once upon a time"
    assert [turn.role for turn in stream.calls[1]] == ["system", "user", "assistant"]
    assert len(session.messages) == 3


@pytest.mark.asyncio
async def test_empty_prompt_after_user_turn_starts_assistant():
    stream = ScriptedStream(*text("reply"))
    session = _session(stream)
    user_id = session.tree.create_user_after(session.tree.active_tail(), "hi")
    session.tree.set_active_target(user_id)

    assistant_id = await session.send("   ")

    assert session.tree.get_node(assistant_id).parent_id == user_id
    assert len(session.messages) == 3


@pytest.mark.asyncio
async def test_send_on_empty_tree_creates_system_message():
    stream = ScriptedStream(*text("ok"))
    session = ChatSession(make_tree(), stream, default_system_prompt="be nice")

    await session.send("hi")

    assert [turn.content for turn in session.messages] == ["be nice", "hi", "ok"]


@pytest.mark.asyncio
async def test_reasoning_and_logprobs_are_recorded():
    chunk = StreamChunk(reasoning="thinking", token_logprobs=[])
    stream = ScriptedStream(chunk, StreamChunk(content="done"))
    session = _session(stream)

    assistant_id = await session.send("q")

    node = session.tree.get_node(assistant_id)
    assert node.reasoning_content == "thinking"
    assert node.content == "done"
    assert node.token_logprobs is None


@pytest.mark.asyncio
async def test_stream_error_marks_node_error():
    stream = ScriptedStream(*text("partial"), error=RuntimeError("boom"))
    session = _session(stream)

    with pytest.raises(RuntimeError, match="boom"):
        await session.send("hi")

    tail = session.messages[-1]
    assert tail.role == "assistant"
    assert tail.status == "error"
    assert tail.content == "partial"
    assert session.is_generating is False
    assert session.stream_manager.active_ids() == []


@pytest.mark.asyncio
async def test_stop_mid_stream_leaves_draft():
    holder = {}

    def stream_fn(turns, signal=None):
        async def run():
            yield StreamChunk(content="a")
            holder["session"].stop()
            yield StreamChunk(content="b")

        return run()

    session = _session(stream_fn)
    holder["session"] = session

    assistant_id = await session.send("hi")

    node = session.tree.get_node(assistant_id)
    assert node.content == "a"
    assert node.status == "draft"
    assert session.is_generating is False


@pytest.mark.asyncio
async def test_abort_error_after_stop_is_swallowed():
    holder = {}

    def stream_fn(turns, signal=None):
        async def run():
            yield StreamChunk(content="a")
            holder["session"].stop()
            raise StreamAbortedError("Request was aborted")

        return run()

    session = _session(stream_fn)
    holder["session"] = session

    assistant_id = await session.send("hi")

    node = session.tree.get_node(assistant_id)
    assert node.status == "draft"
    assert node.content == "a"


@pytest.mark.asyncio
async def test_deleting_stream_target_mid_flight():
    holder = {}

    def stream_fn(turns, signal=None):
        async def run():
            yield StreamChunk(content="a")
            session = holder["session"]
            session.delete_message(session.tree.active_target_id)
            yield StreamChunk(content="b")

        return run()

    session = _session(stream_fn)
    holder["session"] = session

    assistant_id = await session.send("hi")

    assert assistant_id not in session.tree
    assert [turn.role for turn in session.messages] == ["system", "user"]
    assert session.is_generating is False


@pytest.mark.asyncio
async def test_cancelled_task_leaves_draft():
    gate = asyncio.Event()
    stream = ScriptedStream(*text("never"), gate=gate)
    session = _session(stream)

    task = asyncio.create_task(session.send("hi"))
    await asyncio.sleep(0)
    assistant_id = session.tree.active_target_id
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert session.tree.get_node(assistant_id).status == "draft"
    assert session.is_generating is False


@pytest.mark.asyncio
async def test_is_generating_during_stream():
    seen = []
    holder = {}

    def stream_fn(turns, signal=None):
        async def run():
            seen.append(holder["session"].is_generating)
            yield StreamChunk(content="x")

        return run()

    session = _session(stream_fn)
    holder["session"] = session
    await session.send("hi")

    assert seen == [True]
    assert session.is_generating is False


@pytest.mark.asyncio
async def test_delete_message_splices_and_repoints():
    session = _session(ScriptedStream(*text("reply")))
    assistant_id = await session.send("hi")
    user_id = session.tree.predecessor_of(assistant_id)

    session.delete_message(user_id)

    assert [turn.content for turn in session.messages] == ["sys", "reply"]
    assert session.tree.active_target_id == assistant_id


def test_delete_last_node_reseeds_system_message():
    session = _session(ScriptedStream(), prompt="fresh")
    [system_id] = session.tree.roots

    session.delete_message(system_id)

    assert len(session.tree) == 1
    assert session.messages[0].content == "fresh"
    assert session.tree.active_target_id == session.tree.roots[0]


def test_detach_message_moves_active_to_predecessor():
    session = _session(ScriptedStream())
    system_id = session.tree.roots[0]
    user_id = session.tree.create_user_after(system_id, "hi")
    session.tree.set_active_target(user_id)

    session.detach_message(user_id)
    assert session.tree.active_target_id == system_id

    session.detach_message(system_id)
    assert session.tree.active_target_id == system_id


def test_connect_and_disconnect():
    session = _session(ScriptedStream())
    system_id = session.tree.roots[0]
    loose = session.tree.create_user_after(None, "loose")

    assert session.connect(system_id, loose) is True
    assert session.tree.get_node(loose).parent_id == system_id
    assert session.connect(loose, system_id) is False

    session.disconnect(loose)
    assert loose in session.tree.roots


@pytest.mark.asyncio
async def test_edit_flow_branches_and_repoints():
    session = _session(ScriptedStream(*text("reply")))
    assistant_id = await session.send("hi")

    session.start_edit(assistant_id)
    assert session.editing_node_id == assistant_id
    assert session.tree.get_node(assistant_id).status == "draft"

    replacement = session.submit_edit(assistant_id, "edited reply")

    assert session.editing_node_id is None
    assert session.tree.active_target_id == replacement
    assert session.messages[-1].content == "edited reply"
    assert session.tree.get_node(assistant_id).content == "reply"
    assert session.tree.get_node(assistant_id).status == "final"


def test_starting_another_edit_cancels_the_first():
    session = _session(ScriptedStream())
    system_id = session.tree.roots[0]
    user_id = session.tree.create_user_after(system_id, "hi")

    session.start_edit(system_id)
    session.start_edit(user_id)

    assert session.editing_node_id == user_id
    assert session.tree.get_node(system_id).status == "final"

    session.cancel_edit()
    assert session.editing_node_id is None
    assert session.submit_edit("missing", "x") is None


def test_duplicate_and_activate_thread():
    session = _session(ScriptedStream())
    system_id = session.tree.roots[0]
    user_id = session.tree.create_user_after(system_id, "hi")

    copy_id = session.duplicate(user_id)
    session.activate_thread(copy_id)

    assert session.tree.active_target_id == copy_id
    assert [turn.content for turn in session.messages] == ["sys", "hi"]

    session.activate_thread(None)
    assert session.tree.active_target_id == copy_id


def test_clear_conversation_leaves_single_system_message():
    session = _session(ScriptedStream(), prompt="start")
    session.tree.create_user_after(session.tree.roots[0], "hi")

    system_id = session.clear_conversation()

    assert list(session.tree.nodes) == [system_id]
    assert session.tree.active_target_id == system_id
    assert session.messages[0].content == "start"


@pytest.mark.asyncio
async def test_snapshot_save_and_load(tmp_path):
    session = _session(ScriptedStream(*text("reply")))
    assistant_id = await session.send("hi")

    path = session.save_snapshot(tmp_path)

    restored = _session(ScriptedStream())
    restored.start_edit(restored.tree.roots[0])
    restored.load_snapshot(path)

    assert restored.editing_node_id is None
    assert restored.tree.active_target_id == assistant_id
    assert [turn.content for turn in restored.messages] == ["sys", "hi", "reply"]
