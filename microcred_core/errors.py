"""
microcred_core/errors.py — Error codes and transition results

Every registry transition returns a tagged result instead of raising:
``Ok(value)`` on success, ``Err(code)`` on failure. External callers
pattern-match on the numeric code, so the values below are stable and
must never be renumbered.

Code 107 covers three issuer-registry conditions (missing record,
unverified record, duplicate registration). The aliases exist so call
sites can name the condition they check; all three compare equal.
"""

from enum import IntEnum
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

class ErrorCode(IntEnum):
    """Stable numeric error codes returned by registry transitions."""
    UNAUTHORIZED = 100
    ALREADY_EXISTS = 101
    NOT_FOUND = 102
    INVALID_INPUT = 103
    IMMUTABLE = 104
    NOT_APPROVED = 105
    SUPPLY_EXHAUSTED = 106
    ISSUER_NOT_FOUND = 107
    ISSUER_NOT_VERIFIED = 107
    ISSUER_ALREADY_REGISTERED = 107
    OUT_OF_RANGE = 108
    FROZEN = 109


class RegistryError(Exception):
    """Raised by ``Err.unwrap()`` for callers that prefer exceptions."""

    def __init__(self, code: ErrorCode) -> None:
        self.code = ErrorCode(code)
        super().__init__(f"{self.code.name} ({int(self.code)})")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class Ok(BaseModel):
    """Successful transition. ``value`` is the transition's payload."""

    model_config = ConfigDict(frozen=True)

    value: Any = True

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.value}


class Err(BaseModel):
    """Failed transition. State is unchanged when one of these is returned."""

    model_config = ConfigDict(frozen=True)

    code: ErrorCode

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise RegistryError(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {"err": int(self.code)}


Result = Union[Ok, Err]
