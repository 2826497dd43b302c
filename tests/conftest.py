"""Shared fixtures and helpers for flaketrack tests."""

import json
from datetime import UTC, datetime

import pytest
import requests

from flaketrack.testgrid import DEFAULT_BASE_URL, job_table_url, summary_url

COLLECTED_AT = datetime(2025, 1, 15, 10, 0, 0, tzinfo=UTC)
GROUP = "sig-release-master-blocking"


def make_summary_entry(status, **overrides):
    """Generate one summary entry the way TestGrid returns it.

    Extra keyword arguments override or add fields, so unknown fields can
    be injected too.
    """
    entry = {
        "overall_status": status,
        "alert": "",
        "last_run_timestamp": 1736935200000,
        "last_update_timestamp": 1736935800,
        "latest_green": "1.33.0-alpha.0.123",
        "overall_status_icon": "done",
        "status": "10 of 10 (100.0%) recent columns passed",
    }
    entry.update(overrides)
    return entry


def make_table(test_names, test_group="ci-kubernetes-e2e-gce"):
    """Generate a job test table body from a list of test names."""
    return {
        "test-group-name": test_group,
        "query": "gs://kubernetes-jenkins/logs/" + test_group,
        "tests": [
            {
                "name": name,
                "original-name": name,
                "alert": None,
                "linked_bugs": [],
                "messages": ["", "timed out"],
                "short_texts": ["", "F"],
                "statuses": [{"count": 1, "value": 1}, {"count": 1, "value": 12}],
                "target": name,
                "user_property": None,
            }
            for name in test_names
        ],
    }


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, body, status_code=200, url=""):
        self.text = body if isinstance(body, str) else json.dumps(body)
        self.status_code = status_code
        self.url = url

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(
                f"{self.status_code} Error for url: {self.url}"
            )


class FakeSession:
    """Serve canned responses by URL; unknown URLs answer 404.

    A route may also be an exception instance, which is raised.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse({"error": "not found"}, 404, url)
        if isinstance(route, Exception):
            raise route
        return route

    @property
    def urls(self):
        return [url for url, _ in self.calls]

    def add_summary(self, group, body, status_code=200):
        url = summary_url(group, DEFAULT_BASE_URL)
        self.routes[url] = FakeResponse(body, status_code, url)
        return url

    def add_table(self, group, job_name, body, status_code=200):
        url = job_table_url(group, job_name, DEFAULT_BASE_URL)
        self.routes[url] = FakeResponse(body, status_code, url)
        return url


@pytest.fixture
def fake_session(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr("flaketrack.testgrid.get_session", lambda: session)
    return session


# Sample data constants

SAMPLE_SUMMARY = {
    "ci-kubernetes-e2e-gce-flaky": make_summary_entry("FLAKY"),
    "ci-kubernetes-e2e-gce-failing": make_summary_entry("FAILING"),
    "ci-kubernetes-unit": make_summary_entry("PASSING"),
    "ci-kubernetes-e2e-unknown": make_summary_entry("UNKNOWN"),
}

SAMPLE_FLAKY_TESTS = [
    "[sig-network] Services should serve a basic endpoint from pods [Conformance]",
    "[sig-storage] CSI mock volume should expand volume, with a comma",
    "Kubernetes e2e suite.[It] Overall",
]

SAMPLE_FAILING_TESTS = [
    "[sig-node] Pods should be restarted with a docker exec liveness probe",
]
