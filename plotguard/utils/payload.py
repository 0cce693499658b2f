"""Immutable accessor wrapper around raw submission JSON."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any, Union

PayloadScalar = Union[str, int, float, bool, None]
PayloadValue = Union[PayloadScalar, tuple["PayloadValue", ...], "SubmissionPayload"]


def _freeze(value: Any) -> PayloadValue:
    if isinstance(value, dict):
        return SubmissionPayload(value)
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"unsupported payload value type: {type(value).__name__}")


def _thaw(value: PayloadValue) -> Any:
    if isinstance(value, SubmissionPayload):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


class SubmissionPayload(Mapping[str, PayloadValue]):
    """Read-only mapping from Kobo field path to value.

    Keys are used verbatim, so group paths such as
    ``"boundary_mapping/Open_Area_GeoMapping"`` are ordinary keys. Lists become
    tuples and nested objects become nested payloads.

    Examples
    --------
    >>> payload = SubmissionPayload({"First_Name": "  Abebe ", "woreda": ""})
    >>> payload.get_string("First_Name")
    'Abebe'
    >>> payload.get_string_or_none("woreda") is None
    True
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, PayloadValue] = {
            str(key): _freeze(value) for key, value in (data or {}).items()
        }

    @classmethod
    def from_json(cls, text: str | None) -> SubmissionPayload | None:
        """Decode JSON text; return ``None`` unless it is a JSON object."""
        if text is None or not text.strip():
            return None
        try:
            decoded = json.loads(text)
        except ValueError:
            return None
        if not isinstance(decoded, dict):
            return None
        return cls(decoded)

    def __getitem__(self, key: str) -> PayloadValue:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"SubmissionPayload({self._data!r})"

    def get_string_or_none(self, key: str) -> str | None:
        """Return the trimmed string value, or ``None``.

        Missing keys, non-string values (numbers, lists, objects) and blank
        strings all yield ``None``.
        """
        value = self._data.get(key)
        if not isinstance(value, str):
            return None
        trimmed = value.strip()
        return trimmed or None

    def get_string(self, key: str) -> str:
        """Return the trimmed string value, or ``""`` when absent or blank."""
        return self.get_string_or_none(key) or ""

    def get_float_list(self, key: str) -> list[float]:
        """Return numeric items of an array value, skipping anything else."""
        value = self._data.get(key)
        if not isinstance(value, tuple):
            return []
        return [
            float(item)
            for item in value
            if isinstance(item, (int, float)) and not isinstance(item, bool)
        ]

    def get_string_list(self, key: str) -> list[str]:
        """Return string items of an array value, skipping anything else."""
        value = self._data.get(key)
        if not isinstance(value, tuple):
            return []
        return [item for item in value if isinstance(item, str)]

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy with lists restored."""
        return {key: _thaw(value) for key, value in self._data.items()}

    def to_json(self) -> str:
        """Serialize back to compact JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
