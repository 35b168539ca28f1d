"""Elements reconciled between peers."""

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class DataObject:
    """A single immutable element. Identity is value equality."""

    data: str

    @classmethod
    def from_value(cls, value: Any) -> "DataObject":
        """Wrap any serializable value as an element.

        Values providing ``to_element_str()`` are serialized through it,
        bytes are decoded as UTF-8 and everything else goes through ``str()``.

        Raises:
            ValueError: If bytes are not valid UTF-8.
        """
        if isinstance(value, DataObject):
            return value
        if hasattr(value, "to_element_str"):
            return cls(value.to_element_str())
        if isinstance(value, (bytes, bytearray)):
            try:
                return cls(bytes(value).decode("utf-8"))
            except UnicodeDecodeError as e:
                raise ValueError(f"Element bytes are not valid UTF-8: {e}") from e
        return cls(str(value))

    def size(self) -> int:
        """Length in bytes of the encoded payload."""
        return len(self.data.encode("utf-8"))

    def to_bytes(self) -> bytes:
        return self.data.encode("utf-8")

    def to_line(self) -> str:
        """Serialize to a single log line (no trailing newline)."""
        return json.dumps(self.data, ensure_ascii=False)

    @classmethod
    def from_line(cls, line: str) -> "DataObject":
        """Parse one log line written by to_line().

        Raises:
            ValueError: If the line is not a JSON string literal.
        """
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed element line: {line!r}") from e
        if not isinstance(value, str):
            raise ValueError(f"Malformed element line: {line!r}")
        return cls(value)

    def __str__(self) -> str:
        return self.data
