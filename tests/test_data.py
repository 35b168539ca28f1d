"""Tests for DataObject elements."""

import pytest

from gensync.data import DataObject


class Point:
    """A value type with its own element serialization."""

    def __init__(self, x, y):
        self.x = x
        self.y = y

    def to_element_str(self):
        return f"({self.x},{self.y})"


class TestDataObject:
    """Tests for DataObject construction and serialization."""

    def test_value_equality(self):
        """Test identity is value equality."""
        assert DataObject("a") == DataObject("a")
        assert hash(DataObject("a")) == hash(DataObject("a"))
        assert DataObject("a") != DataObject("b")

    def test_immutable(self):
        """Test elements cannot be modified."""
        datum = DataObject("a")
        with pytest.raises(AttributeError):
            datum.data = "b"

    def test_from_value_passthrough(self):
        """Test an existing DataObject is returned unchanged."""
        datum = DataObject("a")
        assert DataObject.from_value(datum) is datum

    def test_from_value_uses_serializer(self):
        """Test values with to_element_str() are serialized through it."""
        assert DataObject.from_value(Point(1, 2)) == DataObject("(1,2)")

    def test_from_value_str_fallback(self):
        """Test plain values go through str()."""
        assert DataObject.from_value(42) == DataObject("42")

    def test_from_value_bytes(self):
        """Test bytes are decoded as UTF-8."""
        assert DataObject.from_value("héllo".encode()) == DataObject("héllo")

    def test_from_value_invalid_bytes(self):
        """Test undecodable bytes are rejected."""
        with pytest.raises(ValueError):
            DataObject.from_value(b"\xff\xfe")

    def test_size_counts_encoded_bytes(self):
        """Test size is the UTF-8 byte length."""
        assert DataObject("abc").size() == 3
        assert DataObject("é").size() == 2

    def test_line_escapes_newlines(self):
        """Test the log line form stays on one line."""
        line = DataObject("two\nlines").to_line()

        assert "\n" not in line
        assert DataObject.from_line(line) == DataObject("two\nlines")

    def test_from_line_malformed(self):
        """Test malformed lines are rejected."""
        with pytest.raises(ValueError):
            DataObject.from_line("not json")
        with pytest.raises(ValueError):
            DataObject.from_line("123")
