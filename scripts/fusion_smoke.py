#!/usr/bin/env python3
"""Smoke run for the fusion engine with paper collaborators.

Creates one intent, picks the best solution, executes it and prints a JSON
summary to stdout. Logs go to stderr.

Usage:
    python scripts/fusion_smoke.py
    python scripts/fusion_smoke.py --input-chain 1 --output-chain 137 --config config/fusion.yaml
    python scripts/fusion_smoke.py --fail-bridge

Exit codes:
    - 0: Intent executed successfully
    - 1: Discovery found nothing or execution failed
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.hot_reload import load_config
from config.runtime_schema import FusionConfig
from execution.engine import FusionEngine
from execution.paper import PaperBridgeClient, PaperDexAggregator


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fusion engine paper smoke run")
    parser.add_argument("--config", default=None, help="Path to fusion YAML config")
    parser.add_argument("--input-token", default="ETH")
    parser.add_argument("--output-token", default="WETH")
    parser.add_argument("--amount", default="1.0")
    parser.add_argument("--min-output", default="0.95")
    parser.add_argument("--input-chain", type=int, default=1)
    parser.add_argument("--output-chain", type=int, default=137)
    parser.add_argument("--user", default="0x000000000000000000000000000000000000dEaD")
    parser.add_argument("--rate", default="1", help="Paper swap rate for every pair")
    parser.add_argument("--fail-bridge", action="store_true", help="Make every bridge transfer fail")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> dict:
    config = load_config(args.config) if args.config else FusionConfig()

    aggregator = PaperDexAggregator(default_rate=args.rate)
    bridge = PaperBridgeClient()
    if args.fail_bridge:
        bridge.failing_tokens = {args.input_token, *config.intermediate_tokens.values()}

    engine = FusionEngine(aggregator=aggregator, bridge=bridge, config=config)

    intent_id = await engine.create_intent(
        args.input_token,
        args.output_token,
        args.amount,
        args.min_output,
        args.input_chain,
        args.output_chain,
        user=args.user,
    )

    solutions = engine.get_solutions(intent_id) or []
    best = engine.get_best_solution(intent_id)
    summary = {
        "intent_id": intent_id,
        "solutions": [
            {"id": s.id, "strategy": s.strategy, "estimated_output": s.estimated_output,
             "total_gas_cost": str(s.total_gas_cost), "confidence": s.confidence}
            for s in solutions
        ],
        "strategy_outcomes": [o.to_dict() for o in engine.get_strategy_outcomes(intent_id)],
        "best_solution_id": best.id if best else None,
        "execution": None,
    }

    if best is not None:
        result = await engine.execute_intent(intent_id, best.id, signer="paper-signer")
        summary["execution"] = result.to_dict()

    summary["status"] = engine.get_intent(intent_id).status.value
    summary["stats"] = engine.get_stats()
    return summary


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )

    summary = asyncio.run(run(args))
    print(json.dumps(summary, indent=2))

    execution = summary["execution"]
    if execution is None or not execution["success"]:
        print("[fusion_smoke] FAIL", file=sys.stderr)
        return 1
    print("[fusion_smoke] PASS", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
