"""
Explicit presence values for partial updates.

A PATCH body distinguishes three states per field: not sent, sent as null and
sent with a value. ``Patch[T]`` keeps "not sent" (:data:`MISSING`) apart from
"sent" (:class:`Present`, whose value may itself be ``None``).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Present(Generic[T]):
    """A field that was supplied, possibly as ``None``."""

    value: T


class Missing:
    """A field that was not supplied."""

    _instance: "Missing | None" = None

    def __new__(cls) -> "Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = Missing()

type Patch[V] = Present[V] | Missing


def present_values(patch: Mapping[str, Patch[Any]]) -> dict[str, Any]:
    """
    Collect the supplied fields of a patch.

    Args:
        patch: Field name to presence value.

    Returns:
        dict[str, Any]: Only the fields wrapped in :class:`Present`, unwrapped.
    """
    return {name: item.value for name, item in patch.items() if isinstance(item, Present)}
