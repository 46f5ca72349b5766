"""Tagged validation result: ``Ok(value)`` or ``Err(field_errors)``."""
from dataclasses import dataclass
from typing import Dict, Generic, List, TypeVar, Union

T = TypeVar("T")

FieldErrors = Dict[str, List[str]]


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    errors: FieldErrors

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
