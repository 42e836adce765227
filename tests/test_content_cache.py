import re
import threading

import pytest

from ingestion.event_schema import UIPreferences
from storage.content_cache import CACHE_KEY_PREFIX, PREFERENCES_KEY, ContentCache
from storage.preferences_store import KeyValueStore

from fakes import BrokenStore, DictStore, make_incident


class TestFingerprint:

    @pytest.mark.parametrize("text", [
        "Major structure fire at 3rd and Market St.",
        "",
        "ünïcödé report 🚒",
        "x" * 10_000,
    ])
    def test_deterministic_64_hex(self, text):
        first = ContentCache.fingerprint(text)

        assert first == ContentCache.fingerprint(text)
        assert re.fullmatch(r"[0-9a-f]{64}", first)

    def test_known_sha256_vector(self):
        assert ContentCache.fingerprint("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_text_is_taken_verbatim(self):
        assert ContentCache.fingerprint("fire on 3rd") != ContentCache.fingerprint("fire on 3rd ")


class TestLookupAndStore:

    def test_miss_then_hit(self):
        cache = ContentCache()
        digest = cache.fingerprint("report one")
        incident = make_incident()

        assert cache.lookup(digest) is None
        cache.store(digest, incident)
        assert cache.lookup(digest) == incident
        assert digest in cache
        assert len(cache) == 1

    def test_last_write_wins(self):
        cache = ContentCache()
        digest = cache.fingerprint("report one")
        first, second = make_incident(), make_incident()

        cache.store(digest, first)
        cache.store(digest, second)

        assert cache.lookup(digest).id == second.id

    def test_write_through_survives_a_new_cache(self):
        store = KeyValueStore(":memory:")
        digest = ContentCache.fingerprint("report one")
        incident = make_incident()

        ContentCache(persistence=store).store(digest, incident)
        restored = ContentCache(persistence=store).lookup(digest)

        assert restored == incident
        assert store.keys(CACHE_KEY_PREFIX) == [CACHE_KEY_PREFIX + digest]

    def test_unreadable_persisted_entry_is_a_miss(self):
        store = DictStore()
        digest = ContentCache.fingerprint("report one")
        store.set(CACHE_KEY_PREFIX + digest, "{not json")

        assert ContentCache(persistence=store).lookup(digest) is None

    def test_broken_persistence_does_not_break_the_cache(self):
        cache = ContentCache(persistence=BrokenStore())
        digest = cache.fingerprint("report one")
        incident = make_incident()

        assert cache.lookup(digest) is None
        cache.store(digest, incident)
        assert cache.lookup(digest) == incident

    def test_concurrent_stores_on_distinct_keys(self):
        cache = ContentCache()
        incidents = {cache.fingerprint(f"report {i}"): make_incident() for i in range(50)}

        threads = [
            threading.Thread(target=cache.store, args=(digest, incident))
            for digest, incident in incidents.items()
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(cache) == 50
        for digest, incident in incidents.items():
            assert cache.lookup(digest).id == incident.id


class TestPreferences:

    def test_defaults_without_persistence(self):
        assert ContentCache().get_preferences() == UIPreferences()

    def test_saved_preferences_persist(self):
        store = DictStore()
        prefs = UIPreferences(search_grounding=False, audio_alerts=True)

        ContentCache(persistence=store).save_preferences(prefs)

        assert PREFERENCES_KEY in store.data
        assert ContentCache(persistence=store).get_preferences() == prefs

    def test_saved_preferences_kept_in_memory_without_persistence(self):
        cache = ContentCache()
        cache.save_preferences(UIPreferences(search_grounding=False))

        assert cache.get_preferences().search_grounding is False

    def test_corrupt_preferences_fall_back_to_defaults(self):
        store = DictStore()
        store.set(PREFERENCES_KEY, '{"search_grounding": "definitely"}')

        assert ContentCache(persistence=store).get_preferences() == UIPreferences()
