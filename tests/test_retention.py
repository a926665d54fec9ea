"""Tests for the clear-all retention action."""

import threading

from conftest import make_record
from request_monitor.retention import RetentionControl


class TestClearAll:
    def test_removes_every_record(self, store, engine):
        for i in range(8):
            store.append(make_record(i))
        removed = RetentionControl(store).clear_all()
        assert removed == 8
        result = engine.search()
        assert result.total == 0
        assert result.records == []

    def test_idempotent(self, store):
        control = RetentionControl(store)
        assert control.clear_all() == 0
        assert control.clear_all() == 0

    def test_store_usable_after_clear(self, store):
        store.append(make_record(0))
        RetentionControl(store).clear_all()
        store.append(make_record(1))
        assert store.count() == 1

    def test_clear_racing_appends(self, store):
        control = RetentionControl(store)
        errors = []

        def writer():
            for i in range(30):
                try:
                    store.append(make_record(i))
                except Exception as e:
                    errors.append(e)

        def clearer():
            for _ in range(5):
                try:
                    control.clear_all()
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(3)]
        threads.append(threading.Thread(target=clearer))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        remaining = store.count()
        assert 0 <= remaining <= 90
        ids = [r.id for r in store.query(None, "id", "ASC", limit=100)]
        assert len(ids) == len(set(ids)) == remaining
