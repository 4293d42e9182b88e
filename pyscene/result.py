"""
Two-variant outcome type used by every parser, validator and encoder.

A Result is either ``Ok(value)`` or ``Err(error)``. Anticipated failures
(malformed input) travel as ``Err``; exceptions are reserved for
programming errors such as unwrapping an ``Err``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


class UnwrapError(Exception):
    """Raised when a value is requested from an Err"""

    def __init__(self, error):
        super().__init__(f"Called unwrap on Err: {error}")
        self.error = error


def _to_wire(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else obj


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def map_error(self, fn: Callable[[Any], F]) -> "Ok[T]":
        return self

    def and_then(self, fn: Callable[[T], "Result"]) -> "Result":
        return fn(self.value)

    chain = and_then

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_or_else(self, fn: Callable[[Any], T]) -> T:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True, "value": _to_wire(self.value)}


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], U]) -> "Err[E]":
        return self

    def map_error(self, fn: Callable[[E], F]) -> "Err[F]":
        return Err(fn(self.error))

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Err[E]":
        return self

    chain = and_then

    def unwrap(self):
        raise UnwrapError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_or_else(self, fn: Callable[[E], T]) -> T:
        return fn(self.error)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": False, "error": _to_wire(self.error)}


Result = Union[Ok[T], Err[E]]


def collect_all(results: Iterable[Result]) -> Result:
    """Turn a sequence of Results into a Result of a list.

    Returns the first Err encountered; otherwise Ok with the values in order.
    """
    values: List[Any] = []
    for result in results:
        if result.is_err():
            return result
        values.append(result.value)
    return Ok(values)


def traverse(fn: Callable[[T], Result], items: Iterable[T]) -> Result:
    """Apply ``fn`` to each item, stopping at the first Err."""
    return collect_all(fn(item) for item in items)
