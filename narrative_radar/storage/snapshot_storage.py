"""Versioned JSON snapshot storage with a "latest" alias per kind.

Each save writes an immutable, timestamp-named file first and only then
replaces ``<kind>_latest.json``, so the alias never points at content
missing from history. Snapshot metadata is optionally mirrored to a Google
Sheets ledger.
"""
from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials

from narrative_radar.core.config import HISTORY_DEFAULT_LIMIT, get_settings
from narrative_radar.core.exceptions import StorageError
from narrative_radar.domain.models import (
    Narrative,
    NarrativeSnapshot,
    SignalSet,
    SignalSnapshot,
    SignalStats,
    SnapshotKind,
    StorageStats,
)

logger = logging.getLogger(__name__)

LATEST_SUFFIX = "latest"
LOCK_FILENAME = ".snapshots.lock"
SNAPSHOT_MODELS: dict[str, type[SignalSnapshot] | type[NarrativeSnapshot]] = {
    "signals": SignalSnapshot,
    "narratives": NarrativeSnapshot,
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _history_sort_key(path: Path) -> tuple[str, int]:
    """Order by timestamp, then by collision suffix."""
    stem = path.stem.split("_", 1)[1]
    timestamp, _, suffix = stem.partition("_")
    return timestamp, int(suffix) if suffix.isdigit() else 0


class SnapshotStorage:
    """Append-only snapshot history plus a mutable latest alias per kind."""

    SHEET_NAME = "Snapshot_Ledger"

    def __init__(
        self,
        storage_dir: Path,
        sheets_client: gspread.Client | None = None,
        spreadsheet_id: str | None = None,
    ):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(exist_ok=True, parents=True)
        self.sheets_client = sheets_client
        self.spreadsheet_id = spreadsheet_id

    # ------------------------------------------------------------------
    # Paths and low-level IO
    # ------------------------------------------------------------------

    def latest_path(self, kind: SnapshotKind) -> Path:
        return self.storage_dir / f"{kind}_{LATEST_SUFFIX}.json"

    def _snapshot_path(self, kind: SnapshotKind, timestamp: str) -> Path:
        safe = timestamp.replace(":", "-").replace(".", "-")
        path = self.storage_dir / f"{kind}_{safe}.json"
        suffix = 1
        while path.exists():
            path = self.storage_dir / f"{kind}_{safe}_{suffix}.json"
            suffix += 1
        return path

    @contextmanager
    def _write_lock(self) -> Iterator[None]:
        with open(self.storage_dir / LOCK_FILENAME, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        """Write via a temporary file and atomic rename so readers never see partial JSON."""
        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _save(self, kind: SnapshotKind, data: dict[str, Any], count: int) -> Path:
        try:
            with self._write_lock():
                snapshot_path = self._snapshot_path(kind, data["timestamp"])
                self._write_json(snapshot_path, data)
                self._write_json(self.latest_path(kind), data)
        except OSError as e:
            logger.error("Failed to save %s snapshot: %s", kind, e)
            raise StorageError(f"Failed to save {kind} snapshot: {e}", kind=kind) from e

        logger.info("Saved %d %s -> %s", count, kind, snapshot_path.name)
        self._save_to_sheets(kind, snapshot_path.name, data["timestamp"], count)
        return snapshot_path

    def _read(self, kind: SnapshotKind, path: Path) -> SignalSnapshot | NarrativeSnapshot | None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            return SNAPSHOT_MODELS[kind].model_validate(payload)
        except FileNotFoundError:
            return None
        except Exception as e:
            logger.error("Error loading %s snapshot %s: %s", kind, path.name, e)
            return None

    def _history_files(self, kind: SnapshotKind) -> list[Path]:
        latest_name = self.latest_path(kind).name
        files = [
            path for path in self.storage_dir.glob(f"{kind}_*.json")
            if path.name != latest_name
        ]
        return sorted(files, key=_history_sort_key, reverse=True)

    # ------------------------------------------------------------------
    # Google Sheets ledger mirror
    # ------------------------------------------------------------------

    def _get_worksheet(self) -> Optional[gspread.Worksheet]:
        """Get or create the Snapshot_Ledger worksheet."""
        if not self.sheets_client or not self.spreadsheet_id:
            return None
        try:
            spreadsheet = self.sheets_client.open_by_key(self.spreadsheet_id)
            try:
                return spreadsheet.worksheet(self.SHEET_NAME)
            except gspread.exceptions.WorksheetNotFound:
                worksheet = spreadsheet.add_worksheet(title=self.SHEET_NAME, rows=1000, cols=4)
                worksheet.update("A1:D1", [["kind", "snapshot", "timestamp", "count"]])
                return worksheet
        except Exception as e:
            logger.error("Failed to get %s worksheet: %s", self.SHEET_NAME, e)
            return None

    def _save_to_sheets(self, kind: str, filename: str, timestamp: str, count: int) -> None:
        worksheet = self._get_worksheet()
        if not worksheet:
            return
        try:
            worksheet.append_row([kind, filename, timestamp, count])
        except Exception as e:
            logger.error("Failed to mirror %s to Sheets: %s", filename, e)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save_signal_set(self, signal_set: SignalSet, meta: dict[str, Any] | None = None) -> Path:
        """Persist a signal set as a new snapshot and point the signals alias at it."""
        meta = meta or {}
        snapshot = SignalSnapshot(
            timestamp=_timestamp(),
            signal_count=len(signal_set.signals),
            day_range=meta.get("day_range"),
            stats=meta.get("stats") or signal_set.stats,
            signals=signal_set.signals,
        )
        return self._save("signals", snapshot.to_wire(), snapshot.signal_count)

    def save_narrative_set(self, narratives: list[Narrative], stats: SignalStats | None = None) -> Path:
        """Persist scored narratives as a new snapshot and point the narratives alias at it."""
        snapshot = NarrativeSnapshot(
            timestamp=_timestamp(),
            narrative_count=len(narratives),
            stats=stats,
            narratives=narratives,
        )
        return self._save("narratives", snapshot.to_wire(), snapshot.narrative_count)

    def load_latest_signals(self) -> SignalSnapshot | None:
        """Latest signal snapshot, or ``None`` before the first collection."""
        return self._read("signals", self.latest_path("signals"))  # type: ignore[return-value]

    def load_latest_narratives(self) -> NarrativeSnapshot | None:
        """Latest narrative snapshot, or ``None`` before the first analysis."""
        return self._read("narratives", self.latest_path("narratives"))  # type: ignore[return-value]

    def load_history(
        self, kind: SnapshotKind, limit: int = HISTORY_DEFAULT_LIMIT
    ) -> list[SignalSnapshot | NarrativeSnapshot]:
        """Up to ``limit`` immutable snapshots of ``kind``, newest first, alias excluded."""
        if kind not in SNAPSHOT_MODELS:
            raise ValueError(f"Unknown snapshot kind: {kind!r}")
        if limit <= 0:
            return []
        snapshots = []
        for path in self._history_files(kind)[:limit]:
            snapshot = self._read(kind, path)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    def load_signal_history(self, limit: int = HISTORY_DEFAULT_LIMIT) -> list[SignalSnapshot]:
        return self.load_history("signals", limit)  # type: ignore[return-value]

    def load_narrative_history(self, limit: int = HISTORY_DEFAULT_LIMIT) -> list[NarrativeSnapshot]:
        return self.load_history("narratives", limit)  # type: ignore[return-value]

    def get_storage_stats(self) -> StorageStats:
        return StorageStats(
            signal_snapshots=len(self._history_files("signals")),
            narrative_snapshots=len(self._history_files("narratives")),
            has_latest_signals=self.latest_path("signals").exists(),
            has_latest_narratives=self.latest_path("narratives").exists(),
        )


@lru_cache(maxsize=1)
def get_snapshot_storage() -> SnapshotStorage:
    """Get or create the singleton storage instance, with the Sheets ledger when configured."""
    sheets_client = None
    spreadsheet_id = None
    settings = get_settings()

    if settings.GOOGLE_CREDENTIALS and settings.SHEET_ID:
        try:
            credentials = Credentials.from_service_account_info(
                json.loads(settings.GOOGLE_CREDENTIALS),
                scopes=["https://www.googleapis.com/auth/spreadsheets"],
            )
            sheets_client = gspread.authorize(credentials)
            spreadsheet_id = settings.SHEET_ID
            logger.info("SnapshotStorage initialised with Google Sheets ledger")
        except Exception as e:
            logger.error("Failed to initialise Google Sheets ledger: %s", e)

    return SnapshotStorage(
        storage_dir=settings.DATA_DIR,
        sheets_client=sheets_client,
        spreadsheet_id=spreadsheet_id,
    )
