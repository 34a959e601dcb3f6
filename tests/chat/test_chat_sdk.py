from ia_ai.types import ProviderConfig
from ia_chat import ChatSession, create_chat_session
from tests.chat.helpers import ScriptedStream
from tests.tree.helpers import chain, make_tree


def test_create_session_seeds_system_prompt(clean_env):
    session = create_chat_session(stream_fn=ScriptedStream(), system_prompt="Be brief.")

    assert isinstance(session, ChatSession)
    assert [turn.content for turn in session.messages] == ["Be brief."]


def test_create_session_uses_env_system_prompt(clean_env):
    clean_env.setenv("IASLATE_SYSTEM_PROMPT", "From env.")
    session = create_chat_session(stream_fn=ScriptedStream())
    assert session.messages[0].content == "From env."


def test_create_session_builds_stream_fn_from_config(clean_env):
    config = ProviderConfig(base_url="http://localhost:1234/v1", model_id="local")
    session = create_chat_session(config=config)
    assert session.messages[0].role == "system"


def test_create_session_loads_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("IASLATE_MODEL=from-file\n", encoding="utf-8")
    session = create_chat_session(env_file=env_file)
    assert len(session.tree) == 1


def test_create_session_restores_snapshot(clean_env, tmp_path):
    source = make_tree()
    ids = chain(source, "sys", "hi", "hello")
    source.set_active_target(ids[-1])
    path = ChatSession(source, ScriptedStream()).save_snapshot(tmp_path)

    session = create_chat_session(stream_fn=ScriptedStream(), snapshot_path=path)

    assert [turn.content for turn in session.messages] == ["sys", "hi", "hello"]


def test_missing_snapshot_path_starts_fresh(clean_env, tmp_path):
    session = create_chat_session(stream_fn=ScriptedStream(), snapshot_path=tmp_path / "none.json")
    assert len(session.tree) == 1
