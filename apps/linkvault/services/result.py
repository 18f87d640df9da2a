"""Ok / Err outcome types returned by archival services. Callers branch on isinstance."""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    data: T = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failure with a machine-readable kind, a human message and optional details."""

    kind: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


Result = Ok | Err
