"""Centralized TestGrid client using requests.

All TestGrid HTTP calls go through this module.
"""

import functools
import json
import logging
from typing import Any
from urllib.parse import quote_plus

import requests

from flaketrack import __version__

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://testgrid.k8s.io"
DEFAULT_TIMEOUT = 30.0

SUMMARY_PATH_FMT = "{base}/{group}/summary"
JOB_TABLE_PATH_FMT = (
    "{base}/{group}/table?tab={tab}&width=5&exclude-non-failed-tests="
    "&sort-by-flakiness=&dashboard={group}"
)


class TestGridError(Exception):
    """Base error for a TestGrid request, carrying where it happened."""

    __test__ = False

    def __init__(self, message: str, group: str = "", job: str = "", url: str = ""):
        super().__init__(message)
        self.group = group
        self.job = job
        self.url = url


class FetchError(TestGridError):
    """Transport failure: connection error, timeout, or non-2xx response."""


class ParseError(TestGridError):
    """Malformed JSON or a body that does not match the expected schema."""


@functools.lru_cache(maxsize=1)
def get_session() -> requests.Session:
    """Create the shared HTTP session.

    Cached for the lifetime of the process; TestGrid is read anonymously.
    """
    session = requests.Session()
    session.headers.update({
        "Accept": "application/json",
        "User-Agent": f"flaketrack/{__version__}",
    })
    return session


def _validate_group(group: str) -> None:
    """Validate that a tab group name is a single path segment."""
    if not group or "/" in group or group.strip() != group:
        raise ValueError(f"Invalid tab group name: '{group}'")


def summary_url(group: str, base_url: str = DEFAULT_BASE_URL) -> str:
    _validate_group(group)
    return SUMMARY_PATH_FMT.format(base=base_url.rstrip("/"), group=group)


def job_table_url(group: str, job_name: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Build the test table URL for one job of a tab group.

    The group is used both as the dashboard and the path segment; the job
    name is the tab and is percent-encoded.
    """
    _validate_group(group)
    return JOB_TABLE_PATH_FMT.format(
        base=base_url.rstrip("/"), group=group, tab=quote_plus(job_name),
    )


def fetch_json(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    group: str = "",
    job: str = "",
) -> Any:
    """GET a URL and decode its JSON body.

    Raises FetchError on transport failures and non-2xx responses, and
    ParseError when the body is not valid JSON.
    """
    logger.debug("GET %s", url)
    try:
        resp = get_session().get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise FetchError(str(e), group=group, job=job, url=url) from e

    try:
        return json.loads(resp.text)
    except ValueError as e:
        raise ParseError(
            f"Invalid JSON body: {e}", group=group, job=job, url=url,
        ) from e


def get_summary(
    group: str,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[dict, str]:
    """Get the tab group summary.

    Returns (summary, url) where summary maps job name to its status dict.
    """
    url = summary_url(group, base_url)
    data = fetch_json(url, timeout=timeout, group=group)
    if not isinstance(data, dict):
        raise ParseError(
            f"Summary must be a JSON object, got {type(data).__name__}",
            group=group, url=url,
        )
    return data, url


def get_job_table(
    group: str,
    job_name: str,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[dict, str]:
    """Get the per-test table for one job.

    Returns (table, url); table holds at least a "tests" list when the job
    has test rows.
    """
    url = job_table_url(group, job_name, base_url)
    data = fetch_json(url, timeout=timeout, group=group, job=job_name)
    if not isinstance(data, dict):
        raise ParseError(
            f"Test table must be a JSON object, got {type(data).__name__}",
            group=group, job=job_name, url=url,
        )
    return data, url
