"""
Incident ledger ordering and the SQLite key/value hook.
"""

import pytest

from ingestion.event_schema import IncidentStatus
from storage.incident_ledger import IncidentLedger
from storage.preferences_store import KeyValueStore

from fakes import make_incident


class TestIncidentLedger:

    def test_prepend_is_most_recent_first(self):
        ledger = IncidentLedger()
        a, b, c = make_incident(), make_incident(), make_incident()

        for incident in (a, b, c):
            ledger.prepend(incident)

        assert [i.id for i in ledger.snapshot()] == [c.id, b.id, a.id]

    def test_prepend_drops_stale_duplicate(self):
        ledger = IncidentLedger()
        a, b = make_incident(), make_incident()
        ledger.prepend(a)
        ledger.prepend(b)

        ledger.prepend(a)

        assert [i.id for i in ledger.snapshot()] == [a.id, b.id]
        assert len(ledger) == 2

    def test_bring_to_front_keeps_current_record(self):
        ledger = IncidentLedger()
        original, other = make_incident(), make_incident()
        ledger.prepend(original)
        ledger.prepend(other)
        dispatched = original.model_copy(update={"status": IncidentStatus.DISPATCHED})
        ledger.replace(dispatched)

        merged = ledger.bring_to_front(original)

        assert merged.status == IncidentStatus.DISPATCHED
        assert ledger.snapshot()[0].id == original.id

    def test_bring_to_front_inserts_unknown(self):
        ledger = IncidentLedger()
        incident = make_incident()

        assert ledger.bring_to_front(incident) is incident
        assert incident.id in ledger

    def test_replace_keeps_position(self):
        ledger = IncidentLedger()
        a, b, c = make_incident(), make_incident(), make_incident()
        for incident in (a, b, c):
            ledger.prepend(incident)

        assert ledger.replace(b.model_copy(update={"status": IncidentStatus.SOLVED}))

        snapshot = ledger.snapshot()
        assert [i.id for i in snapshot] == [c.id, b.id, a.id]
        assert snapshot[1].status == IncidentStatus.SOLVED
        assert b.status == IncidentStatus.ACTIVE

    def test_replace_unknown_is_refused(self):
        assert IncidentLedger().replace(make_incident()) is False


class TestKeyValueStore:

    @pytest.fixture
    def store(self):
        kv = KeyValueStore(":memory:")
        yield kv
        kv.close()

    def test_missing_key(self, store):
        assert store.get("nope") is None

    def test_set_get_overwrite(self, store):
        store.set("ui_preferences", '{"search_grounding": true}')
        store.set("ui_preferences", '{"search_grounding": false}')

        assert store.get("ui_preferences") == '{"search_grounding": false}'

    def test_keys_by_prefix(self, store):
        store.set("incident_cache:b", "{}")
        store.set("incident_cache:a", "{}")
        store.set("ui_preferences", "{}")

        assert store.keys("incident_cache:") == ["incident_cache:a", "incident_cache:b"]

    def test_file_backed_store_survives_reopen(self, tmp_path):
        path = str(tmp_path / "pipeline.db")
        first = KeyValueStore(path)
        first.set("k", "v")
        first.close()

        reopened = KeyValueStore(path)
        assert reopened.get("k") == "v"
        reopened.close()
