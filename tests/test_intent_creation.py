import asyncio

import pytest

from execution.errors import IntentStateError, NotFoundError, ValidationError
from execution.models import IntentStatus, StepType

from conftest import USER, ZCASH_CHAIN


def test_create_intent_runs_discovery_before_returning(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "USDC", "1.0", "1700", 1, 1, USER))

    intent = engine.get_intent(intent_id)
    assert intent.status == IntentStatus.SOLUTIONS_FOUND
    assert intent.input_amount == "1.0"
    assert intent.recipient is None
    assert engine.get_solutions(intent_id)


def test_created_intent_ids_are_unique(make_engine):
    engine = make_engine()

    async def create_many():
        return [
            await engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER)
            for _ in range(20)
        ]

    ids = asyncio.run(create_many())
    assert len(set(ids)) == 20


def test_default_deadline_is_five_minutes(make_engine, clock):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER))

    intent = engine.get_intent(intent_id)
    assert intent.created_at == clock.now
    assert intent.deadline == clock.now + 300


def test_explicit_deadline_and_recipient_are_kept(make_engine, clock):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent(
        "ETH", "USDC", "1", "0", 1, 1, USER, deadline=clock.now + 60, recipient="0xbeef",
    ))

    intent = engine.get_intent(intent_id)
    assert intent.deadline == clock.now + 60
    assert intent.recipient == "0xbeef"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"input_amount": "0"},
        {"input_amount": "-1"},
        {"input_amount": "abc"},
        {"input_amount": "NaN"},
        {"min_output_amount": "-5"},
        {"input_chain": None},
        {"output_chain": 0},
        {"input_chain": True},
        {"input_chain": "1"},
        {"input_token": ""},
        {"user": "  "},
    ],
)
def test_create_intent_rejects_invalid_parameters(make_engine, kwargs):
    engine = make_engine()
    params = dict(
        input_token="ETH",
        output_token="USDC",
        input_amount="1",
        min_output_amount="0",
        input_chain=1,
        output_chain=1,
        user=USER,
    )
    params.update(kwargs)

    with pytest.raises(ValidationError):
        asyncio.run(engine.create_intent(**params))

    assert engine.store.list_intents() == []


def test_deadline_must_be_after_creation(make_engine, clock):
    engine = make_engine()

    with pytest.raises(ValidationError):
        asyncio.run(engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER, deadline=clock.now))


def test_find_solutions_unknown_intent(make_engine):
    engine = make_engine()

    with pytest.raises(NotFoundError):
        asyncio.run(engine.find_solutions("intent_missing"))


def test_same_chain_intent_only_gets_swap(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "USDC", "2", "3000", 1, 1, USER))

    solutions = engine.get_solutions(intent_id)
    assert [s.strategy for s in solutions] == ["same_chain_swap"]
    swap = solutions[0]
    assert [step.step_type for step in swap.steps] == [StepType.SWAP]
    assert swap.estimated_output == "3600"
    assert swap.total_gas_cost == 150_000
    assert swap.confidence == 0.95
    assert swap.execution_time == 30


def test_cross_chain_intent_never_gets_same_chain_swap(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "MATIC", "1", "0", 1, 137, USER))

    strategies = [s.strategy for s in engine.get_solutions(intent_id)]
    assert strategies == ["direct_bridge", "swap_bridge_swap"]


def test_direct_bridge_is_one_to_one(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "WETH", "1.5", "1", 1, 137, USER))

    direct = engine.get_solutions(intent_id)[0]
    assert direct.strategy == "direct_bridge"
    (step,) = direct.steps
    assert step.step_type == StepType.BRIDGE
    assert step.estimated_output == "1.5"
    assert step.dest_chain == 137
    assert direct.total_gas_cost == 200_000
    assert direct.confidence == 0.90
    assert direct.execution_time == 300


def test_swap_bridge_swap_routes_through_stables(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "MATIC", "1", "0", 1, 137, USER))

    sbs = engine.get_solutions(intent_id)[1]
    assert [s.step_type for s in sbs.steps] == [StepType.SWAP, StepType.BRIDGE, StepType.SWAP]
    first, bridge, last = sbs.steps
    assert first.output_token == bridge.input_token
    assert bridge.output_token == last.input_token
    assert (first.chain, bridge.chain, bridge.dest_chain, last.chain) == (1, 1, 137, 137)
    assert first.estimated_output == "1800"
    assert last.estimated_input == "1800"
    assert sbs.estimated_output == "3600"
    assert sbs.total_gas_cost == 150_000 + 200_000 + 150_000
    assert sbs.confidence == 0.85
    assert sbs.execution_time == 360


def test_missing_intermediate_token_leaves_only_direct_bridge(make_engine):
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "ZEC", "1.0", "15.0", 1, ZCASH_CHAIN, USER))

    solutions = engine.get_solutions(intent_id)
    assert [s.strategy for s in solutions] == ["direct_bridge"]
    assert engine.get_intent(intent_id).status == IntentStatus.SOLUTIONS_FOUND

    outcomes = {o.strategy: o for o in engine.get_strategy_outcomes(intent_id)}
    assert outcomes["swap_bridge_swap"].reason == "intermediate_token_missing"
    assert not outcomes["swap_bridge_swap"].ok


def test_quote_failure_is_isolated(make_engine, aggregator):
    aggregator.failing_quotes.add((1, "ETH", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"))
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "MATIC", "1", "0", 1, 137, USER))

    assert [s.strategy for s in engine.get_solutions(intent_id)] == ["direct_bridge"]
    reasons = [o.reason for o in engine.get_strategy_outcomes(intent_id)]
    assert reasons == [None, "quote_failed"]


def test_zero_solutions_still_ends_in_solutions_found(make_engine, aggregator):
    aggregator.failing_quotes.add((1, "ETH", "USDC"))
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER))

    assert engine.get_solutions(intent_id) == []
    assert engine.get_intent(intent_id).status == IntentStatus.SOLUTIONS_FOUND
    assert engine.get_best_solution(intent_id) is None


def test_slow_quote_times_out(make_engine, aggregator, config):
    aggregator.latency_sec = config.quote_timeout_sec + 0.5
    engine = make_engine()

    intent_id = asyncio.run(engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER))

    assert engine.get_solutions(intent_id) == []
    assert [o.reason for o in engine.get_strategy_outcomes(intent_id)] == ["quote_timeout"]


def test_rediscovery_replaces_solutions(make_engine):
    engine = make_engine()

    async def scenario():
        intent_id = await engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER)
        first = engine.get_solutions(intent_id)
        second = await engine.find_solutions(intent_id)
        return intent_id, first, second

    intent_id, first, second = asyncio.run(scenario())
    assert engine.get_solutions(intent_id) == second
    assert first[0].id != second[0].id


def test_find_solutions_refuses_completed_intent(make_engine):
    engine = make_engine()

    async def scenario():
        intent_id = await engine.create_intent("ETH", "USDC", "1", "0", 1, 1, USER)
        best = engine.get_best_solution(intent_id)
        await engine.execute_intent(intent_id, best.id, signer="s")
        await engine.find_solutions(intent_id)

    with pytest.raises(IntentStateError):
        asyncio.run(scenario())
