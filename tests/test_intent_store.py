import asyncio
import json

import pytest

from execution.engine import FusionEngine
from execution.intent_store import InMemoryIntentStore, JsonlIntentStore
from execution.models import ExecutionResult, IntentStatus
from execution.paper import PaperBridgeClient, PaperDexAggregator

from conftest import USER


def run_intent(engine):
    async def scenario():
        intent_id = await engine.create_intent("ETH", "MATIC", "1", "0", 1, 137, USER)
        best = engine.get_best_solution(intent_id)
        result = await engine.execute_intent(intent_id, best.id, signer="s")
        return intent_id, result

    return asyncio.run(scenario())


@pytest.fixture
def journal(tmp_path):
    return tmp_path / "state" / "intents.jsonl"


def test_in_memory_store_returns_copies():
    store = InMemoryIntentStore()
    store.put_solutions("intent_1", [])

    store.get_solutions("intent_1").append("junk")

    assert store.get_solutions("intent_1") == []
    assert store.get_solutions("intent_missing") is None
    assert store.get_execution("intent_missing") is None


def test_put_execution_replaces_previous_result():
    store = InMemoryIntentStore()
    store.put_execution(ExecutionResult(intent_id="intent_1", solution_id="a", success=False, error="boom"))
    store.put_execution(ExecutionResult(intent_id="intent_1", solution_id="b", success=True))

    assert store.get_execution("intent_1").solution_id == "b"


def test_missing_journal_is_created(journal):
    JsonlIntentStore(journal_file=str(journal))

    assert journal.exists()
    assert journal.read_text() == ""


def test_journal_replay_restores_state(journal, config, clock):
    store = JsonlIntentStore(journal_file=str(journal))
    engine = FusionEngine(
        aggregator=PaperDexAggregator(),
        bridge=PaperBridgeClient(),
        store=store,
        config=config,
        clock=clock,
    )
    intent_id, result = run_intent(engine)

    restored = JsonlIntentStore(journal_file=str(journal))

    # Last write wins: the intent was journaled once per status change
    assert restored.get_intent(intent_id) == engine.get_intent(intent_id)
    assert restored.get_intent(intent_id).status == IntentStatus.COMPLETED
    assert restored.get_solutions(intent_id) == engine.get_solutions(intent_id)
    assert restored.get_execution(intent_id) == result
    assert isinstance(restored.get_execution(intent_id).total_gas_used, int)


def test_journal_keeps_latest_status(journal, clock):
    store = JsonlIntentStore(journal_file=str(journal))
    engine = FusionEngine(aggregator=PaperDexAggregator(), bridge=PaperBridgeClient(), store=store, clock=clock)
    intent_id = asyncio.run(engine.create_intent("A", "B", "1", "0", 1, 1, USER, deadline=clock.now + 5))
    clock.advance(10)
    asyncio.run(engine.cleanup_expired_intents())

    statuses = [
        json.loads(line)["data"]["status"]
        for line in journal.read_text().splitlines()
        if json.loads(line)["kind"] == "intent"
    ]
    assert statuses == ["created", "finding_solutions", "solutions_found", "expired"]
    assert JsonlIntentStore(journal_file=str(journal)).get_intent(intent_id).status == IntentStatus.EXPIRED


def test_malformed_lines_are_skipped(journal, clock):
    store = JsonlIntentStore(journal_file=str(journal))
    engine = FusionEngine(aggregator=PaperDexAggregator(), bridge=PaperBridgeClient(), store=store, clock=clock)
    intent_id = asyncio.run(engine.create_intent("A", "B", "1", "0", 1, 1, USER))

    with open(journal, "a") as f:
        f.write("{not json\n")
        f.write(json.dumps({"kind": "mystery", "intent_id": intent_id, "data": {}}) + "\n")
        f.write("\n")

    restored = JsonlIntentStore(journal_file=str(journal))

    assert restored.get_intent(intent_id).status == IntentStatus.SOLUTIONS_FOUND
    assert len(restored.list_intents()) == 1


def test_replayed_intent_can_be_executed(journal, config, clock):
    aggregator = PaperDexAggregator()
    store = JsonlIntentStore(journal_file=str(journal))
    first = FusionEngine(aggregator=aggregator, bridge=PaperBridgeClient(), store=store, config=config, clock=clock)
    intent_id = asyncio.run(first.create_intent("A", "B", "1", "0", 1, 1, USER))
    solution = first.get_best_solution(intent_id)

    second = FusionEngine(
        aggregator=aggregator,
        bridge=PaperBridgeClient(),
        store=JsonlIntentStore(journal_file=str(journal)),
        config=config,
        clock=clock,
    )
    result = asyncio.run(second.execute_intent(intent_id, solution.id, signer="s"))

    assert result.success
    assert second.get_intent(intent_id).status == IntentStatus.COMPLETED


def test_compaction_keeps_latest_state(journal, config, clock):
    store = JsonlIntentStore(journal_file=str(journal))
    engine = FusionEngine(
        aggregator=PaperDexAggregator(), bridge=PaperBridgeClient(), store=store, config=config, clock=clock,
    )
    intent_id, result = run_intent(engine)
    before = len(journal.read_text().splitlines())

    written = store.compact()

    assert written == 3
    assert len(journal.read_text().splitlines()) == 3 < before
    restored = JsonlIntentStore(journal_file=str(journal))
    assert restored.get_intent(intent_id).status == IntentStatus.COMPLETED
    assert restored.get_solutions(intent_id) == engine.get_solutions(intent_id)
    assert restored.get_execution(intent_id) == result


def test_automatic_compaction_bounds_the_journal(journal, clock):
    store = JsonlIntentStore(journal_file=str(journal), compact_every=5)
    engine = FusionEngine(aggregator=PaperDexAggregator(), bridge=PaperBridgeClient(), store=store, clock=clock)

    async def scenario():
        intent_id = await engine.create_intent("A", "B", "1", "0", 1, 1, USER)
        for _ in range(10):
            await engine.find_solutions(intent_id)
        return intent_id

    intent_id = asyncio.run(scenario())

    # One intent record and one solutions record, plus fewer than 5 appends since the last compaction
    assert len(journal.read_text().splitlines()) < 2 + 5
    assert JsonlIntentStore(journal_file=str(journal)).get_solutions(intent_id) == engine.get_solutions(intent_id)
