"""Recoverable conditions reported alongside engine results.

Nothing in the engine raises on degraded data; it records an ``Issue`` and
returns a partial, labelled result instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class IssueCode(str, Enum):
    RATE_UNAVAILABLE = "rate_unavailable"
    PRICE_MISSING = "price_missing"
    PRICE_STALE = "price_stale"
    PRICE_ESTIMATED = "price_estimated"
    INSUFFICIENT_HISTORY = "insufficient_history"
    INVALID_OVERRIDE_TARGET = "invalid_override_target"


@dataclass(frozen=True)
class Issue:
    code: IssueCode
    message: str
    account_id: str = ""
    kind: str = ""
    asset_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "account_id": self.account_id,
            "kind": self.kind,
            "asset_key": self.asset_key,
        }
