"""Tagged outcomes returned by pipeline components.

``Absent`` means "nothing there" and is not an error (no subtitle stream, no
reference entries to match against). ``Failed`` carries the error that made a
step impossible. Callers branch with ``isinstance`` instead of try/except.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from tvrename.core.errors import TvRenameError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T


@dataclass(frozen=True)
class Absent:
    """Nothing to return; not an error."""

    reason: str = ""


@dataclass(frozen=True)
class Failed:
    """The step could not be completed."""

    error: TvRenameError

    @property
    def message(self) -> str:
        return str(self.error)


Outcome = Ok[T] | Absent | Failed
