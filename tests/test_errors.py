"""Tests for per-room error classification."""

from modwarden.matrix.client import MatrixRequestError
from modwarden.moderation.errors import (
    ErrorKind,
    classify_error,
    describe_error,
    room_update_error,
)


class _ErrorAttributeOnly(Exception):
    def __init__(self, error):
        super().__init__()
        self.error = error


class TestDescribeError:
    """Tests for describe_error."""

    def test_uses_message(self):
        assert describe_error(RuntimeError("boom")) == "boom"

    def test_falls_back_to_error_attribute(self):
        assert describe_error(_ErrorAttributeOnly("M_FORBIDDEN text")) == "M_FORBIDDEN text"

    def test_placeholder(self):
        assert describe_error(RuntimeError()) == "<no message>"

    def test_matrix_request_error(self):
        exc = MatrixRequestError(403, "M_FORBIDDEN", "You don't have permission to ban/kick in this room")
        assert describe_error(exc) == "You don't have permission to ban/kick in this room"


class TestClassifyError:
    """Tests for classify_error and room_update_error."""

    def test_permission(self):
        assert classify_error("M_FORBIDDEN: You don't have permission to ban/kick") is ErrorKind.PERMISSION

    def test_other_messages_are_fatal(self):
        assert classify_error("timeout") is ErrorKind.FATAL
        assert classify_error("you don't have permission to ban/kick") is ErrorKind.FATAL

    def test_room_update_error(self):
        error = room_update_error("!r:x", RuntimeError("You don't have permission to ban/kick"))
        assert error.room_id == "!r:x"
        assert error.error_kind is ErrorKind.PERMISSION
        assert error.error_message == "You don't have permission to ban/kick"
