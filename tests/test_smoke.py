import json
import sys
from pathlib import Path

import pytest

from execution.reject_reasons import BRIDGE_FAILED, assert_reason_known

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

import fusion_smoke  # noqa: E402


def test_smoke_run_passes(capsys):
    assert fusion_smoke.main([]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["status"] == "completed"
    assert summary["execution"]["success"] is True
    assert [s["strategy"] for s in summary["solutions"]] == ["direct_bridge", "swap_bridge_swap"]


def test_smoke_run_with_config_file(capsys):
    config_path = Path(__file__).resolve().parent.parent / "config" / "fusion.yaml"

    assert fusion_smoke.main(["--config", str(config_path), "--output-chain", "1", "--rate", "2"]) == 0

    summary = json.loads(capsys.readouterr().out)
    assert summary["execution"]["actual_output"] == "2.0"


def test_smoke_run_fails_when_bridge_fails(capsys):
    assert fusion_smoke.main(["--fail-bridge"]) == 1

    summary = json.loads(capsys.readouterr().out)
    assert summary["status"] == "failed"
    assert summary["execution"]["reason"] == BRIDGE_FAILED
    for outcome in summary["strategy_outcomes"]:
        if outcome["reason"] is not None:
            assert_reason_known(outcome["reason"])
    assert_reason_known(summary["execution"]["reason"])


def test_unknown_reason_is_rejected():
    with pytest.raises(ValueError):
        assert_reason_known("gremlins")
