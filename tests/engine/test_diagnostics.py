"""Tests for engine log scanning and outcome classification."""

from __future__ import annotations

import pytest

from docweave.engine import Diagnostics, Outcome, classify, scan_diagnostics
from docweave.models import FailurePolicy


def test_scan_counts_severity_markers() -> None:
    diagnostics = scan_diagnostics(
        [
            "[INFO] Initializing plugins",
            "[WARN] Undocumented: com.example.Api",
            "WARNING: unresolved link",
            "[ERROR] Failed to analyse sources",
            "ERROR: Something else",
            "Plain line mentioning ERROR in the middle",
        ]
    )

    assert diagnostics.errors == 2
    assert diagnostics.warnings == 2
    assert diagnostics.messages[0] == "[WARN] Undocumented: com.example.Api"
    assert diagnostics.summary() == "2 error(s), 2 warning(s)"


@pytest.mark.parametrize(
    ("exit_code", "diagnostics", "policy", "expected"),
    [
        (0, Diagnostics(), FailurePolicy(), Outcome.SUCCESS),
        (1, Diagnostics(), FailurePolicy(fail_on_error=False), Outcome.FAILURE),
        (0, Diagnostics(errors=1), FailurePolicy(), Outcome.FAILURE),
        (0, Diagnostics(errors=1), FailurePolicy(fail_on_error=False), Outcome.SUCCESS),
        (0, Diagnostics(warnings=3), FailurePolicy(), Outcome.SUCCESS),
        (0, Diagnostics(warnings=3), FailurePolicy(fail_on_warning=True), Outcome.WARNING_AS_FAILURE),
        (0, Diagnostics(errors=1, warnings=1), FailurePolicy(fail_on_warning=True), Outcome.FAILURE),
    ],
)
def test_classify(exit_code: int, diagnostics: Diagnostics, policy: FailurePolicy, expected: Outcome) -> None:
    assert classify(exit_code, diagnostics, policy) is expected
