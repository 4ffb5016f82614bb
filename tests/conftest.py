import pytest

from config.runtime_schema import FusionConfig
from execution.engine import FusionEngine
from execution.paper import PaperBridgeClient, PaperDexAggregator

ETH_USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
POLYGON_USDC = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
ZCASH_CHAIN = 133
USER = "0x00000000000000000000000000000000000000aa"


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> FusionConfig:
    return FusionConfig(quote_timeout_sec=1.0, step_timeout_sec=1.0)


@pytest.fixture
def aggregator() -> PaperDexAggregator:
    return PaperDexAggregator(
        rates={
            (1, "ETH", "USDC"): "1800",
            (1, "ETH", ETH_USDC): "1800",
            (137, POLYGON_USDC, "MATIC"): "2",
        },
    )


@pytest.fixture
def bridge() -> PaperBridgeClient:
    return PaperBridgeClient()


@pytest.fixture
def make_engine(aggregator, bridge, config, clock):
    def _make(**overrides) -> FusionEngine:
        kwargs = dict(aggregator=aggregator, bridge=bridge, config=config, clock=clock)
        kwargs.update(overrides)
        return FusionEngine(**kwargs)

    return _make
