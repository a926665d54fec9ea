from datetime import datetime, timedelta, timezone

import pytest
import yaml

from request_monitor.config import Config
from request_monitor.models import LogRecord
from request_monitor.monitor import RequestMonitor
from request_monitor.query import QueryEngine
from request_monitor.store import LogStore
from request_monitor.web import create_app

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_UA = CHROME_UA + " Edg/120.0.2210.91"
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD_UA = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)

BASE_TIME = datetime(2025, 5, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_record(n=0, **overrides) -> LogRecord:
    """Build a record whose timestamp is BASE_TIME + n seconds."""
    fields = {
        "method": "GET",
        "url": f"https://example.com/page/{n}",
        "ip_address": "203.0.113.5",
        "browser": "Chrome 120.0.0.0",
        "device_type": "Desktop",
        "referer": "Direct",
        "status_code": 200,
        "user_agent": CHROME_UA,
        "timestamp": BASE_TIME + timedelta(seconds=n),
    }
    fields.update(overrides)
    return LogRecord(**fields)


def write_config(path, overrides: dict) -> Config:
    with open(path, "w") as f:
        yaml.dump(overrides, f)
    return Config(str(path))


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CONFIG_PATH", raising=False)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'requests.db'}"


@pytest.fixture
def store(db_url):
    s = LogStore(db_url)
    s.create_schema()
    yield s
    s.close()


@pytest.fixture
def engine(store):
    return QueryEngine(store)


@pytest.fixture
def config(tmp_path, db_url):
    return write_config(tmp_path / "config.yaml", {"storage": {"url": db_url}})


@pytest.fixture
def monitor(config):
    m = RequestMonitor(config)
    m.on_enable()
    yield m
    m.on_disable()


@pytest.fixture
def app(config, monitor):
    application = create_app(config, monitor)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    # Werkzeug's cookie jar would otherwise replace explicit Cookie headers.
    return app.test_client(use_cookies=False)
