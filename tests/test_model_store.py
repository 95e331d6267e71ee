"""
In-memory model registry.
"""

from datetime import datetime, timedelta

from scorelab.services.model_store import ModelStore


class TestModelStore:

    def test_put_and_get(self, fitted):
        store = ModelStore()
        model_id = store.put(fitted, {"table": "flight"})
        assert store.exists(model_id)
        assert store.get(model_id) is fitted
        assert store.get_parsed(model_id).response == "arrdelay"
        meta = store.get_metadata(model_id)
        assert meta["table"] == "flight"
        assert meta["n_obs"] == fitted.n_obs

    def test_missing_model(self):
        store = ModelStore()
        assert store.get("nope") is None
        assert store.get_parsed("nope") is None
        assert store.delete("nope") is False

    def test_delete(self, fitted):
        store = ModelStore()
        model_id = store.put(fitted)
        assert store.delete(model_id) is True
        assert not store.exists(model_id)
        assert store.get_stats() == {"active_models": 0}

    def test_cleanup_expired(self, fitted):
        store = ModelStore(ttl_hours=1)
        old = store.put(fitted)
        fresh = store.put(fitted)
        store.metadata[old]["last_accessed"] = datetime.now() - timedelta(hours=2)
        assert store.cleanup_expired() == 1
        assert not store.exists(old)
        assert store.exists(fresh)
