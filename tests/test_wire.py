"""Tests for the shared error-body model."""

import pytest
from wire.messages import (
    ALL_CODES,
    CONVERSION_FAILED,
    OPERATION_NOT_FOUND,
    ErrorMessage,
)


class TestErrorMessage:
    def test_to_dict_without_optional_fields(self):
        msg = ErrorMessage("Operation not found: frob")
        assert msg.to_dict() == {"message": "Operation not found: frob"}

    def test_to_dict_with_code_and_data(self):
        msg = ErrorMessage("bad number", CONVERSION_FAILED, {"offset": 1})
        d = msg.to_dict()
        assert d["code"] == CONVERSION_FAILED
        assert d["data"] == {"offset": 1}

    def test_from_dict_valid(self):
        msg = ErrorMessage.from_dict({"message": "nope", "code": OPERATION_NOT_FOUND})
        assert msg.message == "nope"
        assert msg.code == OPERATION_NOT_FOUND
        assert msg.data is None

    def test_from_dict_not_dict(self):
        with pytest.raises(ValueError, match="JSON object"):
            ErrorMessage.from_dict(["message"])

    def test_from_dict_missing_message(self):
        with pytest.raises(ValueError, match="message"):
            ErrorMessage.from_dict({"code": CONVERSION_FAILED})

    def test_from_dict_bad_code(self):
        with pytest.raises(ValueError, match="code"):
            ErrorMessage.from_dict({"message": "x", "code": 400})


class TestCodes:
    def test_codes_are_distinct_strings(self):
        assert len(ALL_CODES) == 10
        assert all(isinstance(code, str) for code in ALL_CODES)
