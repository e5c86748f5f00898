"""
Content and performance stores.

Provides the two storage collaborators the quiz core depends on, each
with an in-memory and a JSON-file implementation:
- ContentStore: read-only catalogue of revision resources
- PerformanceStore: append-only performance history plus per-subject
  progression state, with an atomic read-modify-write
"""

from __future__ import annotations

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from loguru import logger

from ..config import config
from ..errors import PersistenceFailed
from ..models.learner_progression import (
    LearnerProgression,
    PerformanceRecord,
    ProgressionState,
)
from ..models.resource import Resource, matching_resources

ProgressionMutator = Callable[[Optional[ProgressionState]], ProgressionState]


class ContentStore(ABC):
    """Read-only source of revision resources."""

    @abstractmethod
    def fetch_resources(self, subject: str, max_difficulty: int, limit: int) -> List[Resource]:
        """
        Resources of ``subject`` with difficulty <= ``max_difficulty``.

        Returns at most ``limit`` resources ordered by (difficulty, id).
        """


class InMemoryContentStore(ContentStore):
    def __init__(self, resources=()):
        self._resources = list(resources)

    def add(self, resource: Resource) -> None:
        self._resources.append(resource)

    def fetch_resources(self, subject: str, max_difficulty: int, limit: int) -> List[Resource]:
        return matching_resources(self._resources, subject, max_difficulty, limit)


class JsonContentStore(ContentStore):
    """
    Resources read from a JSON file.

    The file holds either a list of resource objects or ``{"resources": [...]}``.
    It is read on first use; call ``reload()`` after editing it.
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path) if path else config.paths.resources_file
        self._resources: Optional[List[Resource]] = None
        self._lock = threading.Lock()

    def reload(self) -> List[Resource]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Resource catalogue {self.path} not found, treating as empty")
            data = []
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailed(f"Failed to read resources from {self.path}: {e}") from e

        items = data.get("resources", []) if isinstance(data, dict) else data
        resources = []
        for item in items:
            try:
                resources.append(Resource.from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid resource {item.get('id')!r}: {e}")
        with self._lock:
            self._resources = resources
        logger.info(f"Loaded {len(resources)} resource(s) from {self.path}")
        return resources

    def fetch_resources(self, subject: str, max_difficulty: int, limit: int) -> List[Resource]:
        resources = self._resources if self._resources is not None else self.reload()
        return matching_resources(resources, subject, max_difficulty, limit)


class PerformanceStore(ABC):
    """
    Durable performance history and progression state.

    Implementations raise PersistenceFailed for storage errors.
    """

    def __init__(self):
        self._lock = threading.RLock()

    @abstractmethod
    def append_performance_record(self, record: PerformanceRecord) -> None:
        """Store a new record. Records are never updated."""

    @abstractmethod
    def list_performance_records(
        self,
        learner_id: str,
        subject: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[PerformanceRecord]:
        """
        A learner's records, oldest first.

        Args:
            learner_id: Learner identifier
            subject: Only records of this subject
            limit: Keep only the most recent ``limit`` records
        """

    @abstractmethod
    def read_learner_progression(
        self, learner_id: str, subject: str
    ) -> Optional[ProgressionState]:
        """Stored state, or None if the learner never attempted the subject."""

    @abstractmethod
    def write_learner_progression(
        self, learner_id: str, subject: str, state: ProgressionState
    ) -> None:
        """Replace the stored state."""

    @abstractmethod
    def read_all_progression(self, learner_id: str) -> LearnerProgression:
        """Progression across every subject the learner attempted."""

    def update_progression(
        self, learner_id: str, subject: str, mutator: ProgressionMutator
    ) -> ProgressionState:
        """
        Atomically read, transform and write one progression state.

        ``mutator`` receives the stored state (or None) and returns the new
        one. It runs while the store lock is held and may read records.
        """
        with self._lock:
            current = self.read_learner_progression(learner_id, subject)
            updated = mutator(current)
            self.write_learner_progression(learner_id, subject, updated)
            return updated


def _recent(records: List[PerformanceRecord], limit: Optional[int]) -> List[PerformanceRecord]:
    records.sort(key=lambda r: r.created_at)
    if limit is not None:
        return records[-limit:] if limit > 0 else []
    return records


class InMemoryPerformanceStore(PerformanceStore):
    def __init__(self):
        super().__init__()
        self._records: List[PerformanceRecord] = []
        self._states: Dict[Tuple[str, str], ProgressionState] = {}

    def append_performance_record(self, record: PerformanceRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_performance_records(self, learner_id, subject=None, limit=None):
        with self._lock:
            records = [
                r for r in self._records
                if r.learner_id == learner_id and (subject is None or r.subject == subject)
            ]
        return _recent(records, limit)

    def read_learner_progression(self, learner_id, subject):
        with self._lock:
            return self._states.get((learner_id, subject))

    def write_learner_progression(self, learner_id, subject, state):
        with self._lock:
            self._states[(learner_id, subject)] = state

    def read_all_progression(self, learner_id):
        with self._lock:
            states = [s for (lid, _), s in self._states.items() if lid == learner_id]
        return LearnerProgression(learner_id, states)


class JsonPerformanceStore(PerformanceStore):
    """
    JSON files, one directory per learner:

        <base_dir>/<quoted learner_id>/records/<record_id>.json
        <base_dir>/<quoted learner_id>/progression.json   (subject -> state)

    Writes go through a temporary file and an atomic rename. The lock
    serialises writers within one process only.
    """

    def __init__(self, base_dir: Optional[Path | str] = None):
        self.base_dir = Path(base_dir) if base_dir else config.paths.performance_dir
        super().__init__()

    def _learner_dir(self, learner_id: str) -> Path:
        # Percent-encoded so any id maps to a single path component
        name = quote(str(learner_id), safe="@")
        if name in ("", ".", ".."):
            raise PersistenceFailed(f"Learner id {learner_id!r} cannot be used as a directory name")
        return self.base_dir / name

    def _write_json(self, path: Path, data) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceFailed(f"Failed to write {path}: {e}") from e

    def _read_json(self, path: Path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailed(f"Failed to read {path}: {e}") from e

    def append_performance_record(self, record: PerformanceRecord) -> None:
        path = self._learner_dir(record.learner_id) / "records" / f"{record.record_id}.json"
        with self._lock:
            if path.exists():
                raise PersistenceFailed(f"Performance record {record.record_id} already exists")
            self._write_json(path, record.to_dict())
        logger.debug(f"Saved performance record {record.record_id} to {path}")

    def list_performance_records(self, learner_id, subject=None, limit=None):
        records_dir = self._learner_dir(learner_id) / "records"
        records = []
        with self._lock:
            for path in records_dir.glob("*.json"):
                data = self._read_json(path)
                if data is None:
                    continue
                try:
                    record = PerformanceRecord.from_dict(data)
                except (KeyError, ValueError, TypeError) as e:
                    raise PersistenceFailed(f"Corrupt performance record {path}: {e}") from e
                if subject is None or record.subject == subject:
                    records.append(record)
        return _recent(records, limit)

    def _read_states(self, learner_id: str) -> Dict[str, dict]:
        data = self._read_json(self._learner_dir(learner_id) / "progression.json")
        return data or {}

    def read_learner_progression(self, learner_id, subject):
        with self._lock:
            data = self._read_states(learner_id).get(subject)
        if data is None:
            return None
        try:
            return ProgressionState.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceFailed(f"Corrupt progression state for {learner_id}/{subject}: {e}") from e

    def write_learner_progression(self, learner_id, subject, state):
        with self._lock:
            states = self._read_states(learner_id)
            states[subject] = state.to_dict()
            self._write_json(self._learner_dir(learner_id) / "progression.json", states)

    def read_all_progression(self, learner_id):
        with self._lock:
            states = self._read_states(learner_id)
        try:
            return LearnerProgression(
                learner_id, [ProgressionState.from_dict(s) for s in states.values()]
            )
        except (KeyError, ValueError, TypeError) as e:
            raise PersistenceFailed(f"Corrupt progression state for {learner_id}: {e}") from e
