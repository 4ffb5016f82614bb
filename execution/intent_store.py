"""execution/intent_store.py

Repository for intents, their solutions and the latest execution result.

- IntentStore: abstract repository the engine depends on
- InMemoryIntentStore: dict-backed, guarded by an RLock
- JsonlIntentStore: in-memory maps plus an append-only JSONL journal that is
  replayed on startup for crash recovery

Stores hold data only. Lifecycle rules live in execution.engine.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from execution.models import ExecutionResult, Intent, Solution

logger = logging.getLogger(__name__)


class IntentStore(ABC):
    """
    Abstract intent repository keyed by intent id.

    Implementations must make reads safe under concurrent writes.
    """

    @abstractmethod
    def get_intent(self, intent_id: str) -> Optional[Intent]:
        ...

    @abstractmethod
    def put_intent(self, intent: Intent) -> None:
        ...

    @abstractmethod
    def list_intents(self) -> List[Intent]:
        """Return a snapshot of all stored intents."""
        ...

    @abstractmethod
    def get_solutions(self, intent_id: str) -> Optional[List[Solution]]:
        ...

    @abstractmethod
    def put_solutions(self, intent_id: str, solutions: List[Solution]) -> None:
        ...

    @abstractmethod
    def get_execution(self, intent_id: str) -> Optional[ExecutionResult]:
        ...

    @abstractmethod
    def put_execution(self, result: ExecutionResult) -> None:
        """Store result, replacing any previous result for the same intent."""
        ...


class InMemoryIntentStore(IntentStore):
    """Dict-backed store. Only the map operations are critical sections."""

    def __init__(self):
        self._intents: Dict[str, Intent] = {}
        self._solutions: Dict[str, List[Solution]] = {}
        self._executions: Dict[str, ExecutionResult] = {}
        self._lock = threading.RLock()

    def get_intent(self, intent_id: str) -> Optional[Intent]:
        with self._lock:
            return self._intents.get(intent_id)

    def put_intent(self, intent: Intent) -> None:
        with self._lock:
            self._intents[intent.id] = intent

    def list_intents(self) -> List[Intent]:
        with self._lock:
            return list(self._intents.values())

    def get_solutions(self, intent_id: str) -> Optional[List[Solution]]:
        with self._lock:
            solutions = self._solutions.get(intent_id)
            return list(solutions) if solutions is not None else None

    def put_solutions(self, intent_id: str, solutions: List[Solution]) -> None:
        with self._lock:
            self._solutions[intent_id] = list(solutions)

    def get_execution(self, intent_id: str) -> Optional[ExecutionResult]:
        with self._lock:
            return self._executions.get(intent_id)

    def put_execution(self, result: ExecutionResult) -> None:
        with self._lock:
            self._executions[result.intent_id] = result


class JsonlIntentStore(InMemoryIntentStore):
    """
    Store that journals every write to a JSONL file.

    Design:
    - Each line is {"kind": "intent"|"solutions"|"execution", "intent_id": ..., "data": ...}
    - Replay applies lines in order, so the last write for a key wins
    - Malformed lines are skipped with a warning
    - compact() rewrites the journal to one record per live key; with
      compact_every > 0 it runs automatically after that many appends
    """

    def __init__(self, *, journal_file: str, compact_every: int = 0):
        super().__init__()
        self.journal_file = Path(journal_file)
        self.compact_every = compact_every
        self._appended = 0
        self._replay()

    def _replay(self) -> None:
        if not self.journal_file.exists():
            self.journal_file.parent.mkdir(parents=True, exist_ok=True)
            self.journal_file.write_text("")
            return

        applied = 0
        with open(self.journal_file, "r") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self._apply(json.loads(line))
                    applied += 1
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"[store] Skipping malformed journal line {line_no}: {e}")

        logger.info(f"[store] Replayed {applied} records from {self.journal_file}")

    def _apply(self, entry: Dict[str, Any]) -> None:
        kind = entry["kind"]
        data = entry["data"]
        if kind == "intent":
            super().put_intent(Intent.from_dict(data))
        elif kind == "solutions":
            super().put_solutions(entry["intent_id"], [Solution.from_dict(s) for s in data])
        elif kind == "execution":
            super().put_execution(ExecutionResult.from_dict(data))
        else:
            raise ValueError(f"unknown record kind {kind!r}")

    def _append(self, kind: str, intent_id: str, data: Any) -> None:
        record = json.dumps({"kind": kind, "intent_id": intent_id, "data": data})
        with open(self.journal_file, "a") as f:
            f.write(record + "\n")
        self._appended += 1

    def _records(self) -> List[Dict[str, Any]]:
        records = [
            {"kind": "intent", "intent_id": i.id, "data": i.to_dict()}
            for i in self._intents.values()
        ]
        records.extend(
            {"kind": "solutions", "intent_id": k, "data": [s.to_dict() for s in v]}
            for k, v in self._solutions.items()
        )
        records.extend(
            {"kind": "execution", "intent_id": k, "data": r.to_dict()}
            for k, r in self._executions.items()
        )
        return records

    def compact(self) -> int:
        """
        Rewrite the journal with only the latest record per key.

        Returns:
            Number of records written.
        """
        with self._lock:
            records = self._records()
            temp_file = self.journal_file.with_suffix(".tmp")
            try:
                with open(temp_file, "w") as f:
                    for record in records:
                        f.write(json.dumps(record) + "\n")
                temp_file.replace(self.journal_file)
            except OSError:
                if temp_file.exists():
                    temp_file.unlink()
                raise
            self._appended = 0

        logger.info(f"[store] Compacted {self.journal_file} to {len(records)} records")
        return len(records)

    def _maybe_compact(self) -> None:
        if self.compact_every and self._appended >= self.compact_every:
            self.compact()

    # Journal and map update happen under the same lock so replay order matches memory order

    def put_intent(self, intent: Intent) -> None:
        with self._lock:
            self._append("intent", intent.id, intent.to_dict())
            super().put_intent(intent)
            self._maybe_compact()

    def put_solutions(self, intent_id: str, solutions: List[Solution]) -> None:
        with self._lock:
            self._append("solutions", intent_id, [s.to_dict() for s in solutions])
            super().put_solutions(intent_id, solutions)
            self._maybe_compact()

    def put_execution(self, result: ExecutionResult) -> None:
        with self._lock:
            self._append("execution", result.intent_id, result.to_dict())
            super().put_execution(result)
            self._maybe_compact()
