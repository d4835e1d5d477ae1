"""Common type aliases shared across the application.

``JSONValue`` models JSON-compatible payloads so error documents, chat
metadata and configuration trees stay serialisable without resorting to
``Any``.
"""

from __future__ import annotations

from typing import Dict, List, TypeAlias, Union

# NOTE: containers use ``object`` instead of recursive aliases so pydantic can
# build schemas without hitting recursion limits.
JSONPrimitive: TypeAlias = Union[str, int, float, bool, None]
JSONValue: TypeAlias = Union[JSONPrimitive, Dict[str, object], List[object]]
JSONDict: TypeAlias = Dict[str, JSONValue]

# Nested ``SECTION -> KEY -> value`` mapping persisted in ``config.toml``.
ConfigTree: TypeAlias = Dict[str, object]

__all__ = ["JSONPrimitive", "JSONValue", "JSONDict", "ConfigTree"]
