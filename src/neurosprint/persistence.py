"""JSON file persistence for the week store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from neurosprint import codec
from neurosprint.models import PlannerConfig
from neurosprint.store import WeekStore

DEFAULT_DB_FILE = "neurosprint-planner.json"
DB_ENV_VAR = "NEUROSPRINT_DB"

logger = logging.getLogger(__name__)


class StateFileError(ValueError):
    """The state file exists but cannot be read back as a planner state."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot read planner state from {path}: {reason}")
        self.path = path
        self.reason = reason


def default_db_path() -> Path:
    return Path(os.environ.get(DB_ENV_VAR) or DEFAULT_DB_FILE)


class StateFile:
    """Reads and writes the planner state (one JSON document)."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path is not None else default_db_path()

    def load(self, config: PlannerConfig | None = None) -> WeekStore:
        """Return the stored state, or a fresh store for this week if none exists."""
        if not self.db_path.exists():
            logger.debug("no state at %s, starting a new week", self.db_path)
            return WeekStore(config=config)

        result = codec.parse_snapshot(self.db_path.read_text(encoding="utf-8"))
        if not result:
            raise StateFileError(self.db_path, result.error)
        snap: codec.Snapshot = result.value
        return WeekStore(
            current_week=snap.current_week,
            weeks=snap.weeks,
            month_settings=snap.month_settings,
            config=config,
        )

    def save(self, store: WeekStore) -> None:
        """Write the full state atomically: temp file in the same directory, then rename."""
        raw = codec.snapshot_to_dict(store)
        directory = self.db_path.parent
        fd, tmp = tempfile.mkstemp(prefix=f".{self.db_path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(raw, f, indent=4, ensure_ascii=False)
            os.replace(tmp, self.db_path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("saved %d week(s) to %s", len(store.weeks) + 1, self.db_path)

    def attach(self, store: WeekStore):
        """Save after every change to *store*. Returns the unsubscribe callable."""
        return store.subscribe(self.save)

    def open(self, config: PlannerConfig | None = None) -> WeekStore:
        """Load the store and keep this file in sync with it."""
        store = self.load(config)
        self.attach(store)
        return store
