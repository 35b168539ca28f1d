"""Lookup of sync methods by configuration name."""

import logging
from typing import Any

from jsonschema import Draft7Validator, SchemaError

from .base import SyncMethod

logger = logging.getLogger(__name__)

_METHODS: dict[str, type[SyncMethod]] = {}


def register_method(cls: type[SyncMethod]) -> type[SyncMethod]:
    """Class decorator making a method available to create_method()."""
    if not cls.key:
        raise ValueError(f"{cls.__name__} has no key")
    if cls.key in _METHODS and _METHODS[cls.key] is not cls:
        raise ValueError(f"Duplicate sync method key: {cls.key}")
    _METHODS[cls.key] = cls
    return cls


def available_methods() -> list[str]:
    return sorted(_METHODS)


def validate_method_params(
    cls: type[SyncMethod], params: dict[str, Any]
) -> tuple[bool, str | None]:
    """Validate constructor parameters against the method's JSON Schema.

    Returns:
        Tuple of (valid, error_message).
    """
    try:
        validator = Draft7Validator(cls.config_schema)
        errors = list(validator.iter_errors(params))
    except SchemaError as e:
        error_msg = f"Invalid JSON Schema for sync method '{cls.key}': {e.message}"
        logger.error(error_msg)
        return (False, error_msg)

    if not errors:
        return (True, None)

    error_msgs = []
    for error in errors:
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        error_msgs.append(f"  - {path}: {error.message}")
    return (
        False,
        f"Invalid parameters for sync method '{cls.key}':\n" + "\n".join(error_msgs),
    )


def create_method(name: str, params: dict[str, Any] | None = None) -> SyncMethod:
    """Instantiate a registered method by key.

    Raises:
        ValueError: If the method is unknown or its parameters are invalid.
    """
    params = params or {}
    try:
        cls = _METHODS[name]
    except KeyError:
        raise ValueError(
            f"Unknown sync method '{name}' (available: {', '.join(available_methods())})"
        ) from None

    valid, error = validate_method_params(cls, params)
    if not valid:
        raise ValueError(error)
    return cls(**params)
