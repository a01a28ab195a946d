"""Tests for the snapshot storage layer."""
from __future__ import annotations

import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from narrative_radar.core.exceptions import StorageError
from narrative_radar.domain.models import Narrative
from narrative_radar.services.signal_svc import build_signal_set
from narrative_radar.storage.snapshot_storage import SnapshotStorage


@pytest.fixture
def storage():
    """Create a temporary storage instance for testing (local files only)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield SnapshotStorage(storage_dir=Path(tmpdir))


@pytest.fixture
def signal_set():
    return build_signal_set([
        {"source": "github", "name": "org/repo", "stars": 40, "topics": ["anchor"]},
        {"source": "social", "subSource": "kol", "text": "agents everywhere", "topics": ["ai_agents"]},
    ])


def _timestamps(*values):
    return patch("narrative_radar.storage.snapshot_storage._timestamp", side_effect=list(values))


def test_load_before_any_save_returns_none(storage):
    assert storage.load_latest_signals() is None
    assert storage.load_latest_narratives() is None
    assert storage.load_signal_history() == []


def test_save_and_load_latest_signals(storage, signal_set):
    path = storage.save_signal_set(signal_set, {"day_range": 7, "stats": signal_set.stats})

    latest = storage.load_latest_signals()

    assert path.exists()
    assert latest is not None
    assert latest.signal_count == 2
    assert latest.day_range == 7
    assert latest.signals == signal_set.signals
    assert latest.stats.by_source == {"github": 1, "social": 1}


def test_snapshot_file_uses_camel_case_keys(storage, signal_set):
    path = storage.save_signal_set(signal_set)
    data = json.loads(path.read_text(encoding="utf-8"))

    assert set(data) >= {"timestamp", "signalCount", "signals"}
    assert "subSource" in data["signals"][0]


def test_history_is_immutable_and_latest_moves(storage, signal_set):
    with _timestamps("2025-01-01T00:00:00.000Z", "2025-01-02T00:00:00.000Z"):
        first = storage.save_narrative_set([Narrative(id="a", name="First")])
        first_content = first.read_text(encoding="utf-8")
        second = storage.save_narrative_set([Narrative(id="b", name="Second")])

    assert first != second
    assert first.read_text(encoding="utf-8") == first_content
    assert storage.load_latest_narratives().narratives[0].name == "Second"

    history = storage.load_narrative_history()
    assert [h.narratives[0].name for h in history] == ["Second", "First"]


def test_same_timestamp_gets_collision_suffix(storage):
    stamp = "2025-01-01T00:00:00.000Z"
    with _timestamps(stamp, stamp, stamp):
        paths = [storage.save_narrative_set([Narrative(name=str(i))]) for i in range(3)]

    assert len({p.name for p in paths}) == 3
    assert paths[1].stem.endswith("_1")
    assert paths[2].stem.endswith("_2")
    assert [h.narratives[0].name for h in storage.load_narrative_history()] == ["2", "1", "0"]


def test_history_limit_and_alias_excluded(storage, signal_set):
    with _timestamps(*(f"2025-01-0{day}T00:00:00.000Z" for day in range(1, 5))):
        for _ in range(4):
            storage.save_signal_set(signal_set)

    assert len(storage.load_history("signals", limit=2)) == 2
    assert len(storage.load_history("signals", limit=50)) == 4
    assert storage.load_history("signals", limit=0) == []
    assert storage.load_history("signals", limit=-1) == []


def test_unknown_kind_is_rejected(storage):
    with pytest.raises(ValueError):
        storage.load_history("ideas")


def test_storage_stats(storage, signal_set):
    stats = storage.get_storage_stats()
    assert stats.signal_snapshots == 0
    assert not stats.has_latest_signals

    storage.save_signal_set(signal_set)
    stats = storage.get_storage_stats()

    assert stats.signal_snapshots == 1
    assert stats.narrative_snapshots == 0
    assert stats.has_latest_signals
    assert not stats.has_latest_narratives
    assert stats.to_wire() == {
        "signalSnapshots": 1,
        "narrativeSnapshots": 0,
        "hasLatestSignals": True,
        "hasLatestNarratives": False,
    }


def test_corrupt_latest_alias_reads_as_absent(storage):
    storage.latest_path("narratives").write_text("{not json", encoding="utf-8")
    assert storage.load_latest_narratives() is None


def test_write_failure_raises_storage_error(storage, signal_set):
    with patch("narrative_radar.storage.snapshot_storage.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StorageError) as exc_info:
            storage.save_signal_set(signal_set)

    assert exc_info.value.kind == "signals"
    assert storage.load_latest_signals() is None
    assert not list(storage.storage_dir.glob(".tmp_*"))


def test_ledger_mirror_appends_row():
    worksheet = MagicMock()
    client = MagicMock()
    client.open_by_key.return_value.worksheet.return_value = worksheet

    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SnapshotStorage(storage_dir=Path(tmpdir), sheets_client=client, spreadsheet_id="sheet-1")
        path = storage.save_narrative_set([Narrative(name="Mirrored")])

    client.open_by_key.assert_called_once_with("sheet-1")
    kind, filename, _, count = worksheet.append_row.call_args[0][0]
    assert (kind, filename, count) == ("narratives", path.name, 1)


def test_ledger_mirror_failure_does_not_fail_save():
    client = MagicMock()
    client.open_by_key.side_effect = RuntimeError("sheets down")

    with tempfile.TemporaryDirectory() as tmpdir:
        storage = SnapshotStorage(storage_dir=Path(tmpdir), sheets_client=client, spreadsheet_id="sheet-1")
        storage.save_narrative_set([Narrative(name="Local only")])

        assert storage.load_latest_narratives().narratives[0].name == "Local only"
