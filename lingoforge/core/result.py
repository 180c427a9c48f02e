"""
Result type for explicit error handling.

Every adapter and tool operation returns an ``OperationResult``: either
``Ok(value)`` or ``Err(TranslationError)``. Callers check ``is_ok()`` or
``is_err()`` before reading the value.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Callable, Generic, TypeVar, Union

from .exceptions import TranslationError

T = TypeVar('T')
E = TypeVar('E')
R = TypeVar('R')


@dataclass
class Ok(Generic[T]):
    """Successful result."""
    value: T = None

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def map(self, func: Callable[[T], R]) -> 'Ok[R]':
        """Apply ``func`` to the value, e.g. to swap ``None`` for the loaded adapter."""
        return Ok(func(self.value))


@dataclass
class Err(Generic[E]):
    """Failed result carrying the error (normally a ``TranslationError``)."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    @property
    def message(self) -> str:
        """User-facing error text."""
        return getattr(self.error, 'message', str(self.error))

    def unwrap(self) -> None:
        raise ValueError(f"Called unwrap on Err: {self.message}")

    def map(self, func: Callable) -> 'Err[E]':
        return self


OperationResult = Union[Ok[T], Err[TranslationError]]


def as_operation(func: Callable[..., T]) -> Callable[..., 'OperationResult[T]']:
    """Decorator converting raised ``TranslationError`` into ``Err``.

    Any other exception propagates: it signals a bug, not a user-facing failure.

    Example:
        @as_operation
        def load(self, payload):
            ...

        result = adapter.load(payload)
        if result.is_err():
            print(result.message)
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> 'OperationResult[T]':
        try:
            return Ok(func(*args, **kwargs))
        except TranslationError as e:
            return Err(e)
    return wrapper
