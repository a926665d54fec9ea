import threading

import pytest

from request_monitor.validator import DescriptorValidator


@pytest.fixture
def validator():
    return DescriptorValidator()


@pytest.fixture
def valid_payload():
    return {
        "method": "GET",
        "url": "https://example.com/about",
        "headers": {"User-Agent": "Mozilla/5.0", "Referer": "https://ref.example/"},
        "status_code": 200,
        "remote_addr": "198.51.100.4",
    }


class TestDescriptorValidator:
    def test_valid(self, validator, valid_payload):
        is_valid, errors = validator.validate(valid_payload)
        assert is_valid is True
        assert errors == []

    def test_minimal(self, validator):
        assert validator.validate({"method": "GET", "url": "https://example.com/"})[0] is True

    def test_missing_url(self, validator, valid_payload):
        del valid_payload["url"]
        is_valid, errors = validator.validate(valid_payload)
        assert is_valid is False
        assert any("url" in e for e in errors)

    def test_empty_method(self, validator, valid_payload):
        valid_payload["method"] = ""
        assert validator.validate(valid_payload)[0] is False

    def test_extra_field_rejected(self, validator, valid_payload):
        valid_payload["cookies"] = {}
        assert validator.validate(valid_payload)[0] is False

    def test_non_string_header(self, validator, valid_payload):
        valid_payload["headers"]["X-Count"] = 3
        assert validator.validate(valid_payload)[0] is False

    def test_errors_name_the_field(self, validator, valid_payload):
        valid_payload["headers"]["X-Count"] = 3
        del valid_payload["method"]
        _, errors = validator.validate(valid_payload)
        assert errors[0].startswith("headers.X-Count: ")
        assert errors[1] == "method: 'method' is a required property"


class TestValidationStats:
    def test_counts(self, validator, valid_payload):
        validator.validate(valid_payload)
        validator.validate({})
        stats = validator.get_stats()
        assert stats["total"] == 2
        assert stats["valid"] == 1
        assert stats["invalid"] == 1
        assert stats["error_types"] == {"required": 2}
        assert stats["fields"] == {"method": 1, "url": 1}

    def test_reset(self, validator):
        validator.validate({})
        validator.reset_stats()
        stats = validator.get_stats()
        assert stats["total"] == 0
        assert stats["error_types"] == {}

    def test_concurrent_counts(self, validator, valid_payload):
        def worker():
            for _ in range(50):
                validator.validate(valid_payload)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert validator.get_stats()["valid"] == 200
