"""Derive sig ownership labels from test names."""

import re

from flaketrack.models import SIG_JOB_OWNER, TestResult

SIG_RE = re.compile(r"\[(sig-[^\]]+?)\]\s")


def tag_sig(test_name: str) -> str:
    """Return the sig label for a test name.

    Uses the first "[sig-<name>] " marker anywhere in the name, without its
    brackets; falls back to "job-owner".
    '[sig-network] pods should have IP' -> 'sig-network'
    'generic failure' -> 'job-owner'
    """
    match = SIG_RE.search(test_name or "")
    if match:
        return match.group(1)
    return SIG_JOB_OWNER


def tag_tests(tests: list[TestResult]) -> list[TestResult]:
    """Set the sig label on each test in place and return the list."""
    for test in tests:
        test.sig = tag_sig(test.name)
    return tests
