# test/test_persistence.py
import json
import os
import sys
from datetime import datetime, timedelta, timezone

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if os.path.join(ROOT, 'src') not in sys.path:
    sys.path.insert(0, os.path.join(ROOT, 'src'))

from dryroom.config import Settings
from dryroom.ledger import DegreeDayLedger
from dryroom.messages import Sample
from dryroom.persistence import PersistedState, StateStore

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def write(path, data):
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")


def test_missing_file_gives_defaults(tmp_path):
    state = StateStore(str(tmp_path / "none.json")).load()
    assert state.settings == Settings()
    assert state.trackers == []


def test_partial_record_defaults_the_rest(tmp_path):
    path = tmp_path / "state.json"
    write(path, {"target_humidity": 12})
    state = StateStore(str(path)).load()
    assert state.settings.target_humidity == 12.0
    assert state.settings.target_exposure == Settings().target_exposure
    assert state.settings.max_temperature == Settings().max_temperature
    assert state.trackers == []


def test_bad_fields_fall_back_one_at_a_time(tmp_path):
    path = tmp_path / "state.json"
    write(path, {"target_humidity": "wet", "max_temperature": 28.5, "trackers": "lots"})
    state = StateStore(str(path)).load()
    assert state.settings.target_humidity == Settings().target_humidity
    assert state.settings.max_temperature == 28.5
    assert state.trackers == []


def test_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "state.json"
    write(path, "{not json")
    assert StateStore(str(path)).load() == PersistedState()


def test_save_then_load_reproduces_trackers(tmp_path):
    ledger = DegreeDayLedger(gap_s=None)
    ledger.create_tracker(40.0, T0)
    ledger.create_tracker(2.0, T0 + timedelta(hours=3))
    ledger.integrate(Sample(21.3, 40.0, 0.0), T0 + timedelta(hours=3))
    ledger.integrate(Sample(21.3, 40.0, 9000.0), T0 + timedelta(hours=5.5))
    records = ledger.to_records()

    store = StateStore(str(tmp_path / "state.json"))
    settings = Settings(target_humidity=11.0, target_exposure=38.5, max_temperature=29.0)
    store.save(PersistedState(settings=settings, trackers=records))
    store.save(PersistedState(settings=settings, trackers=records))

    loaded = store.load()
    assert loaded.settings == settings
    assert loaded.trackers == records

    restored = DegreeDayLedger()
    restored.load_records(loaded.trackers)
    assert restored.to_records() == records
    assert [t.started for t in restored.trackers] == [t.started for t in ledger.trackers]
    assert not os.path.exists(store.path + ".tmp")
