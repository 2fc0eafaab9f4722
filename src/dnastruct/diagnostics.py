from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Diagnostic kinds
COUNT_MISMATCH = "count_mismatch"
UNRESOLVED_PATCH = "unresolved_patch"
UNRESOLVED_SPRING = "unresolved_spring"
DROPPED_CONNECTION = "dropped_connection"
MALFORMED_ROW = "malformed_row"
SHORT_ROW = "short_row"
TRUNCATED = "truncated"


class FormatError(ValueError):
    """Raised when a topology file has no parseable header line."""


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    line: Optional[int] = None  # 1-based source line, when known

    def __str__(self) -> str:
        where = f"line {self.line}: " if self.line is not None else ""
        return f"[{self.kind}] {where}{self.message}"


def record(
    diagnostics: list[Diagnostic],
    kind: str,
    message: str,
    line: Optional[int] = None,
    log: logging.Logger = logger,
) -> Diagnostic:
    """Append a soft diagnostic and log it; parsing carries on."""
    d = Diagnostic(kind=kind, message=message, line=line)
    diagnostics.append(d)
    log.warning(str(d))
    return d
