"""config/hot_reload.py

YAML config loading and a thread-safe reloader with file watching.
"""

import threading
import dataclasses
import yaml
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from config.runtime_schema import FusionConfig

logger = logging.getLogger(__name__)


# section -> {yaml key: FusionConfig field}
_SECTION_FIELDS: Dict[str, Dict[str, str]] = {
    "intents": {
        "default_deadline_sec": "default_deadline_sec",
        "solver_id": "solver_id",
    },
    "discovery": {
        "quote_timeout_sec": "quote_timeout_sec",
        "slippage_pct": "slippage_pct",
        "swap_protocol": "swap_protocol",
        "bridge_protocol": "bridge_protocol",
        "bridge_gas_estimate": "bridge_gas_estimate",
    },
    "execution": {
        "step_timeout_sec": "step_timeout_sec",
    },
    "scoring": {
        "output_divisor": "score_output_divisor",
        "gas_divisor": "score_gas_divisor",
        "confidence_weight": "score_confidence_weight",
    },
    "reaper": {
        "interval_sec": "reaper_interval_sec",
    },
}

# discovery.strategies.<name>.{confidence,execution_time_sec}
_STRATEGY_PREFIXES = ("same_chain", "direct_bridge", "swap_bridge_swap")


def config_from_dict(raw_data: Any) -> FusionConfig:
    """
    Build a FusionConfig from the nested YAML structure.

    Missing keys fall back to FusionConfig defaults.

    Raises:
        ValueError: If the structure or any value is invalid
    """
    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ValueError("Config root must be a dictionary")

    flat_data: Dict[str, Any] = {}

    for section, fields in _SECTION_FIELDS.items():
        values = raw_data.get(section) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Config section '{section}' must be a dictionary")
        for key, field_name in fields.items():
            if key in values:
                flat_data[field_name] = values[key]

    strategies = (raw_data.get("discovery") or {}).get("strategies") or {}
    for prefix in _STRATEGY_PREFIXES:
        params = strategies.get(prefix) or {}
        if "confidence" in params:
            flat_data[f"{prefix}_confidence"] = params["confidence"]
        if "execution_time_sec" in params:
            flat_data[f"{prefix}_execution_time_sec"] = params["execution_time_sec"]

    # YAML keys may come back as strings ("137") depending on quoting
    if "intermediate_tokens" in raw_data:
        tokens = raw_data["intermediate_tokens"] or {}
        if not isinstance(tokens, dict):
            raise ValueError("intermediate_tokens must be a mapping of chain id to address")
        try:
            flat_data["intermediate_tokens"] = {int(k): v for k, v in tokens.items()}
        except (TypeError, ValueError):
            raise ValueError(f"intermediate_tokens keys must be chain ids, got {list(tokens)}")

    return FusionConfig(**flat_data)


def load_config(config_path: str) -> FusionConfig:
    """Read and validate a YAML config file."""
    with open(config_path, "r") as f:
        raw_data = yaml.safe_load(f)
    return config_from_dict(raw_data)


def diff_configs(old: FusionConfig, new: FusionConfig) -> List[str]:
    """Describe every field that differs between two configs."""
    return [
        f"{f.name} {getattr(old, f.name)} -> {getattr(new, f.name)}"
        for f in dataclasses.fields(FusionConfig)
        if getattr(old, f.name) != getattr(new, f.name)
    ]


class ConfigReloader:
    """
    Polls a YAML file and swaps the engine config when its mtime changes.

    Pass get_config as the engine's config_provider. Until a valid file has
    been read it returns the defaults; an invalid file keeps the last good
    config and sets last_error.

    Usage:
        reloader = ConfigReloader("config/fusion.yaml")
        engine = FusionEngine(aggregator, bridge, config_provider=reloader.get_config)
        reloader.start_watching()
    """

    def __init__(
        self,
        config_path: str,
        on_reload: Optional[Callable[[FusionConfig], None]] = None,
        poll_interval_sec: float = 1.0,
    ):
        self.path = Path(config_path)
        self.poll_interval_sec = poll_interval_sec
        self._callback = on_reload

        self._config = FusionConfig()
        self._seen_mtime: Optional[float] = None
        self._guard = threading.RLock()
        self.reload_count = 0
        self.last_error: Optional[str] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        if not self.path.exists():
            logger.warning(f"[config] {self.path} not found, running with defaults")
        elif self._apply(self.path.stat().st_mtime, notify=False):
            logger.info(f"[config] Loaded {self.path}")

    def get_config(self) -> FusionConfig:
        """Current snapshot; safe to call from any thread."""
        with self._guard:
            return self._config

    def start_watching(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._watch, name="FusionConfigWatcher", daemon=True)
        self._thread.start()
        logger.info(f"[config] Watching {self.path} every {self.poll_interval_sec}s")

    def stop_watching(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        logger.info("[config] Watcher stopped")

    def check_now(self) -> bool:
        """
        Reload if the file changed since the last check.

        Returns:
            True if a new config was installed
        """
        try:
            mtime = self.path.stat().st_mtime
        except OSError:
            return False  # missing or transiently unavailable
        # Any mtime change counts, including a revert to an older file
        if mtime == self._seen_mtime:
            return False
        return self._apply(mtime, notify=True)

    def _watch(self) -> None:
        while not self._stop.is_set():
            try:
                self.check_now()
            except Exception as e:
                logger.error(f"[config] Watcher check failed: {e}")
            self._stop.wait(self.poll_interval_sec)

    def _apply(self, mtime: float, notify: bool) -> bool:
        # The mtime is recorded even for a bad file so it is reported once, not every poll
        self._seen_mtime = mtime
        try:
            candidate = load_config(str(self.path))
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            self.last_error = str(e)
            logger.error(f"[config] Rejected {self.path}: {e}. Keeping current config.")
            return False

        with self._guard:
            previous, self._config = self._config, candidate
            self.reload_count += 1
            self.last_error = None

        if notify:
            changes = diff_configs(previous, candidate)
            logger.info(f"[config] Reloaded {self.path}: {', '.join(changes) or 'no changes'}")
            if self._callback is not None:
                self._callback(candidate)
        return True
