"""Tests for the RequestMonitor facade and its lifecycle."""

import pytest

from conftest import IPAD_UA, write_config
from request_monitor.exceptions import DescriptorError
from request_monitor.models import RequestDescriptor
from request_monitor.monitor import RequestMonitor


def _descriptor(**overrides) -> RequestDescriptor:
    fields = {
        "method": "GET",
        "url": "https://example.com/shop?item=3",
        "headers": {"User-Agent": IPAD_UA, "X-Forwarded-For": "10.0.0.1, 203.0.113.5"},
        "status_code": 200,
    }
    fields.update(overrides)
    return RequestDescriptor(**fields)


class TestLifecycle:
    def test_calls_before_initialize_fail(self, config):
        m = RequestMonitor(config)
        with pytest.raises(RuntimeError):
            m.query({})

    def test_initialize_is_idempotent(self, config):
        m = RequestMonitor(config)
        m.initialize()
        store = m.store
        m.initialize()
        assert m.store is store
        m.on_disable()

    def test_data_survives_disable_by_default(self, config):
        m = RequestMonitor(config)
        m.on_enable()
        m.ingest(_descriptor())
        m.on_disable()
        assert m.store is None

        again = RequestMonitor(config)
        again.on_enable()
        assert again.query({})["total"] == 1
        again.on_disable()

    def test_drop_on_disable(self, tmp_path, db_url):
        cfg = write_config(tmp_path / "drop.yaml", {"storage": {"url": db_url, "drop_on_disable": True}})
        m = RequestMonitor(cfg)
        m.on_enable()
        m.ingest(_descriptor())
        m.on_disable()

        again = RequestMonitor(cfg)
        again.on_enable()
        assert again.query({})["total"] == 0
        again.on_disable()

    def test_disable_without_enable(self, config):
        RequestMonitor(config).on_disable()


class TestEntryPoints:
    def test_ingest_then_details(self, monitor):
        log_id = monitor.ingest(_descriptor())
        log = monitor.details(log_id)
        assert log["ip_address"] == "203.0.113.5"
        assert log["device_type"] == "Tablet"
        assert log["browser"] == "Safari 604.1"
        assert log["referer"] == "Direct"

    def test_details_not_found(self, monitor):
        assert monitor.details(404) is None

    def test_ingest_payload(self, monitor):
        log_id = monitor.ingest_payload({
            "method": "GET",
            "url": "https://example.com/",
            "headers": {"Referer": "https://ref.example/"},
            "remote_addr": "198.51.100.9",
        })
        log = monitor.details(log_id)
        assert log["ip_address"] == "198.51.100.9"
        assert log["referer"] == "https://ref.example/"

    def test_ingest_payload_invalid(self, monitor):
        with pytest.raises(DescriptorError) as excinfo:
            monitor.ingest_payload({"method": "GET"})
        assert excinfo.value.errors
        assert monitor.query({})["total"] == 0

    def test_query_and_clear(self, monitor):
        for i in range(3):
            monitor.ingest(_descriptor(url=f"https://example.com/{i}"))
        assert monitor.query({"search": "example.com/1"})["total"] == 1
        assert monitor.clear() == 3
        assert monitor.query({})["total"] == 0
        assert monitor.clear() == 0
