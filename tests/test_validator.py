"""Tests for append request validation."""

import threading

import pytest

from userlogs.errors import ValidationError
from userlogs.validator import AppendRequestValidator


@pytest.fixture
def validator():
    return AppendRequestValidator()


class TestValidPayloads:
    def test_minimal(self, validator):
        fields = validator.validate({"user_id": "alice", "message": "login"})
        assert fields == {"user_id": "alice", "message": "login", "created": None}

    def test_with_created(self, validator):
        fields = validator.validate(
            {"user_id": "bob", "message": "hi", "created": "2025-07-13T08:00:00.000Z"}
        )
        assert fields["created"] == "2025-07-13T08:00:00.000Z"

    def test_blank_created_treated_as_absent(self, validator):
        assert validator.validate({"user_id": "a", "message": "m", "created": ""})["created"] is None
        assert validator.validate({"user_id": "a", "message": "m", "created": None})["created"] is None

    def test_extra_fields_ignored(self, validator):
        fields = validator.validate({"user_id": "a", "message": "m", "level": "INFO"})
        assert "level" not in fields


class TestInvalidPayloads:
    def test_missing_user_id(self, validator):
        with pytest.raises(ValidationError) as excinfo:
            validator.validate({"message": "m"})
        assert excinfo.value.fields == ["user_id"]
        assert excinfo.value.missing is True

    def test_missing_both(self, validator):
        with pytest.raises(ValidationError) as excinfo:
            validator.validate({})
        assert sorted(excinfo.value.fields) == ["message", "user_id"]
        assert excinfo.value.missing is True

    def test_blank_message(self, validator):
        with pytest.raises(ValidationError) as excinfo:
            validator.validate({"user_id": "a", "message": "   "})
        assert excinfo.value.fields == ["message"]
        assert excinfo.value.missing is True

    def test_wrong_type(self, validator):
        with pytest.raises(ValidationError) as excinfo:
            validator.validate({"user_id": 42, "message": "m"})
        assert excinfo.value.fields == ["user_id"]
        assert excinfo.value.missing is False

    def test_not_an_object(self, validator):
        with pytest.raises(ValidationError):
            validator.validate(["user_id", "message"])

    def test_created_content_not_parsed_here(self, validator):
        fields = validator.validate({"user_id": "a", "message": "m", "created": "yesterday"})
        assert fields["created"] == "yesterday"

    def test_created_wrong_type(self, validator):
        with pytest.raises(ValidationError) as excinfo:
            validator.validate({"user_id": "a", "message": "m", "created": 1700000000})
        assert excinfo.value.fields == ["created"]
        assert excinfo.value.missing is False


class TestStats:
    def test_counts(self, validator):
        validator.validate({"user_id": "a", "message": "m"})
        with pytest.raises(ValidationError):
            validator.validate({})
        assert validator.get_stats() == {"total": 2, "valid": 1, "invalid": 1}

    def test_concurrent_counts_not_lost(self, validator):
        def worker():
            for _ in range(200):
                validator.validate({"user_id": "a", "message": "m"})

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert validator.get_stats() == {"total": 1600, "valid": 1600, "invalid": 0}
