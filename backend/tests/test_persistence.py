"""
Unit tests for best-effort conversation persistence.
"""
import time
from unittest.mock import MagicMock

import pytest
from prometheus_client import REGISTRY

from fakes import FakeStore
from flowbot.core.errors import PersistenceError
from flowbot.services.assistant.composer import compose_response
from flowbot.services.assistant.generation import GenerationOutcome
from flowbot.services.assistant.persistence import (
    ConversationPersistence,
    SupabaseConversationStore,
    build_title,
)
from flowbot.services.assistant.schema import (
    AssistantRequest,
    ContentType,
    ConversationTurn,
    LoadedFile,
    Route,
    route_from_stored,
)


def _request(message="hello", file_ref=None):
    return AssistantRequest(message=message, file_ref=file_ref, owner_id="owner1")


def _composed(route=Route.GENERAL, text="Short answer.", degraded=False, image_url=None,
              loaded=None, data_fired=False):
    outcome = GenerationOutcome(route=route, text=text, degraded=degraded, image_url=image_url, prompt="p")
    return compose_response(outcome, loaded or LoadedFile(), data_fired)


@pytest.mark.asyncio
async def test_short_general_answer_writes_conversation_only():
    store = FakeStore()
    persistence = ConversationPersistence(store)

    result = await persistence.persist(_request(), _composed())

    assert result.conversation_saved
    assert result.generated_content_saved is None
    assert len(store.conversations) == 1
    assert store.generated == []

    turn = store.conversations[0]
    assert turn.owner_id == "owner1"
    assert turn.user_message == "hello"
    assert turn.assistant_response == "Short answer."
    assert turn.message_type == Route.GENERAL
    assert turn.metadata["type"] == "general_assistance"


@pytest.mark.asyncio
async def test_image_writes_image_record():
    store = FakeStore()
    persistence = ConversationPersistence(store)

    composed = _composed(route=Route.IMAGE, text="Here is your image", image_url="https://img/x.png")
    await persistence.persist(_request("Create a logo for my bakery"), composed)

    assert len(store.generated) == 1
    record = store.generated[0]
    assert record.content_type == ContentType.IMAGE
    assert record.payload["image_url"] == "https://img/x.png"
    assert record.prompt == "Create a logo for my bakery"
    assert record.title.startswith("Generated image:")


@pytest.mark.asyncio
async def test_long_answer_writes_document_record():
    store = FakeStore()
    persistence = ConversationPersistence(store, generated_content_min_chars=500)

    await persistence.persist(_request("write a report"), _composed(text="x" * 501))

    assert len(store.generated) == 1
    assert store.generated[0].content_type == ContentType.DOCUMENT
    assert store.generated[0].payload["text"] == "x" * 501


@pytest.mark.asyncio
async def test_answer_at_threshold_is_not_generated_content():
    store = FakeStore()
    persistence = ConversationPersistence(store, generated_content_min_chars=500)

    await persistence.persist(_request(), _composed(text="x" * 500))

    assert store.generated == []


@pytest.mark.asyncio
async def test_processed_file_writes_document_record():
    store = FakeStore()
    loaded = LoadedFile(raw_text="a,b", source_ref="owner1/report.csv")

    await ConversationPersistence(store).persist(
        _request("", "owner1/report.csv"), _composed(route=Route.DATA, loaded=loaded, data_fired=True)
    )

    assert len(store.generated) == 1
    assert store.generated[0].title == "Analysis of report.csv"


@pytest.mark.asyncio
async def test_data_processing_tag_writes_document_record():
    store = FakeStore()

    await ConversationPersistence(store).persist(
        _request("make a table"), _composed(route=Route.DATA, data_fired=True)
    )

    assert len(store.generated) == 1


@pytest.mark.asyncio
async def test_degraded_answer_never_writes_generated_content():
    store = FakeStore()

    await ConversationPersistence(store, generated_content_min_chars=10).persist(
        _request("make a table"), _composed(route=Route.DATA, text="y" * 100, degraded=True, data_fired=True)
    )

    assert len(store.conversations) == 1
    assert store.generated == []


@pytest.mark.asyncio
async def test_write_failures_are_independent():
    store = FakeStore(fail_conversation=True)

    result = await ConversationPersistence(store).persist(
        _request("make a table"), _composed(route=Route.DATA, data_fired=True)
    )

    assert not result.conversation_saved
    assert result.generated_content_saved
    assert len(store.generated) == 1


@pytest.mark.asyncio
async def test_missing_store_skips_writes():
    result = await ConversationPersistence(None).persist(_request(), _composed())

    assert not result.conversation_saved
    assert result.generated_content_saved is None


def test_build_title_truncates_long_messages():
    composed = _composed()
    title = build_title(_request("a" * 200), composed, ContentType.DOCUMENT)

    assert len(title) == 60
    assert title.endswith("...")


def test_supabase_store_inserts_rows():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[{"id": "1"}])
    store = SupabaseConversationStore(client)
    turn = ConversationTurn(
        owner_id="owner1",
        user_message="hi",
        assistant_response="hello",
        message_type=Route.GENERAL,
        metadata={"type": "general_assistance"},
    )

    store.insert_conversation(turn)

    client.table.assert_called_with("ai_conversations")
    row = client.table.return_value.insert.call_args[0][0]
    assert row["user_id"] == "owner1"
    assert row["message"] == "hi"
    assert row["response"] == "hello"
    assert row["message_type"] == "general"
    assert row["metadata"] == {"type": "general_assistance"}


def test_supabase_store_raises_when_insert_returns_nothing():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[])
    store = SupabaseConversationStore(client)
    turn = ConversationTurn(
        owner_id="owner1",
        user_message="hi",
        assistant_response="hello",
        message_type=Route.GENERAL,
    )

    with pytest.raises(PersistenceError):
        store.insert_conversation(turn)


def test_supabase_store_lists_history_in_order():
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.order.return_value.limit.return_value
    query.execute.return_value = MagicMock(data=[
        {
            "id": 7,
            "user_id": "owner1",
            "message": "hi",
            "response": "hello",
            "message_type": "general",
            "metadata": None,
            "created_at": "2024-01-01T00:00:00+00:00",
        }
    ])
    store = SupabaseConversationStore(client)

    turns = store.list_conversations("owner1", limit=10)

    client.table.return_value.select.return_value.eq.assert_called_with("user_id", "owner1")
    client.table.return_value.select.return_value.eq.return_value.order.assert_called_with("created_at")
    assert turns[0].id == "7"
    assert turns[0].metadata == {}
    assert turns[0].message_type == Route.GENERAL


def _sample(name, table):
    return REGISTRY.get_sample_value(name, {"table": table}) or 0.0


@pytest.mark.parametrize(
    "stored, expected",
    [("image", Route.IMAGE), ("data", Route.DATA), ("chat", Route.GENERAL), (None, Route.GENERAL), ("", Route.GENERAL)],
)
def test_route_from_stored(stored, expected):
    assert route_from_stored(stored) == expected


def test_chat_ui_rows_read_back_as_general():
    turn = ConversationTurn.from_row({
        "id": 3,
        "user_id": "owner1",
        "message": "hi",
        "response": "hello",
        "message_type": "chat",
        "metadata": {},
        "created_at": "2024-01-01T00:00:00+00:00",
    })

    assert turn.message_type == Route.GENERAL
    assert turn.to_row()["message_type"] == "general"


@pytest.mark.asyncio
async def test_write_metrics_use_configured_table_names():
    store = FakeStore(fail_generated=True)
    persistence = ConversationPersistence(
        store,
        conversations_table="chat_turns_custom",
        generated_content_table="artifacts_custom",
    )
    before_ok = _sample("persistence_writes_total", "chat_turns_custom")
    before_fail = _sample("persistence_failures_total", "artifacts_custom")

    await persistence.persist(_request("make a table"), _composed(route=Route.DATA, data_fired=True))

    assert _sample("persistence_writes_total", "chat_turns_custom") == before_ok + 1
    assert _sample("persistence_failures_total", "artifacts_custom") == before_fail + 1


class SlowStore(FakeStore):
    def insert_conversation(self, turn):
        time.sleep(0.3)
        super().insert_conversation(turn)


@pytest.mark.asyncio
async def test_timed_out_write_is_counted_as_timeout_not_failure():
    persistence = ConversationPersistence(SlowStore(), timeout_seconds=0.05, conversations_table="slow_turns")
    before_timeouts = _sample("persistence_timeouts_total", "slow_turns")
    before_failures = _sample("persistence_failures_total", "slow_turns")

    result = await persistence.persist(_request(), _composed())

    assert not result.conversation_saved
    assert _sample("persistence_timeouts_total", "slow_turns") == before_timeouts + 1
    assert _sample("persistence_failures_total", "slow_turns") == before_failures
