"""Severity scanning of engine logs and outcome classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from ..models import FailurePolicy

_ERROR_PATTERN = re.compile(r"^\s*(?:\[ERROR\]|ERROR:)")
_WARNING_PATTERN = re.compile(r"^\s*(?:\[WARN(?:ING)?\]|WARN(?:ING)?:)")
_MAX_MESSAGES = 20


@dataclass(frozen=True)
class Diagnostics:
    errors: int = 0
    warnings: int = 0
    messages: Tuple[str, ...] = ()

    def summary(self) -> str:
        return f"{self.errors} error(s), {self.warnings} warning(s)"


class Outcome(str, Enum):
    SUCCESS = "success"
    WARNING_AS_FAILURE = "warning_as_failure"
    FAILURE = "failure"


def scan_diagnostics(lines: Iterable[str]) -> Diagnostics:
    """Count error and warning lines, keeping the first few for reporting."""
    errors = 0
    warnings = 0
    messages: List[str] = []
    for line in lines:
        if _ERROR_PATTERN.match(line):
            errors += 1
        elif _WARNING_PATTERN.match(line):
            warnings += 1
        else:
            continue
        if len(messages) < _MAX_MESSAGES:
            messages.append(line.strip())
    return Diagnostics(errors=errors, warnings=warnings, messages=tuple(messages))


def classify(exit_code: int, diagnostics: Diagnostics, policy: FailurePolicy) -> Outcome:
    if exit_code != 0:
        return Outcome.FAILURE
    if diagnostics.errors and policy.fail_on_error:
        return Outcome.FAILURE
    if diagnostics.warnings and policy.fail_on_warning:
        return Outcome.WARNING_AS_FAILURE
    return Outcome.SUCCESS


__all__ = ["Diagnostics", "Outcome", "classify", "scan_diagnostics"]
