"""Collect job status for a TestGrid tab group and enrich non-passing jobs.

collect_status() partitions the tab group summary into flaking, failing and
passing jobs. enrich_snapshot() then fetches the test table of every flaking
and failing job and attaches the sig-tagged tests to its record.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from flaketrack.models import (
    STATUS_FAILING,
    STATUS_FLAKY,
    STATUS_PASSING,
    JobError,
    JobRecord,
    TabGroupSnapshot,
    TestResult,
)
from flaketrack.sigs import tag_tests
from flaketrack.testgrid import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    ParseError,
    TestGridError,
    get_job_table,
    get_summary,
)

logger = logging.getLogger(__name__)

# summary key -> (JobRecord attribute, expected type)
SUMMARY_FIELDS = {
    "overall_status": ("overall_status", str),
    "alert": ("alert", str),
    "last_run_timestamp": ("last_run", int),
    "last_update_timestamp": ("last_update", int),
    "latest_green": ("latest_green", str),
    "overall_status_icon": ("status_icon", str),
    "status": ("status_description", str),
}


def log_failure(action: str, err: Exception, group: str, job: str = "", url: str = "") -> None:
    """Log a collection failure with the group, job and URL it concerns."""
    logger.error(
        "%s failed: %s (group=%s job=%s url=%s)",
        action, err, group, job or "-", url or "-",
    )


def parse_job_record(name: str, entry, group: str = "", url: str = "") -> JobRecord:
    """Build a JobRecord from one summary entry, ignoring unknown fields."""
    if not isinstance(entry, dict):
        raise ParseError(
            f"Summary entry for '{name}' must be an object",
            group=group, job=name, url=url,
        )
    record = JobRecord()
    for key, (attr, expected) in SUMMARY_FIELDS.items():
        value = entry.get(key)
        if value is None:
            continue
        if not isinstance(value, expected) or isinstance(value, bool):
            raise ParseError(
                f"Field '{key}' of '{name}' must be {expected.__name__}, "
                f"got {type(value).__name__}",
                group=group, job=name, url=url,
            )
        setattr(record, attr, value)
    return record


def classify_jobs(snapshot: TabGroupSnapshot, records: dict[str, JobRecord]) -> None:
    """Partition records into the snapshot's buckets.

    Status matching is case-insensitive. Jobs whose status is none of
    FLAKY, FAILING or PASSING are counted but left out of every bucket.
    """
    buckets = {
        STATUS_FLAKY: snapshot.flaking,
        STATUS_FAILING: snapshot.failing,
        STATUS_PASSING: snapshot.passing,
    }
    snapshot.count = len(records)
    for name, record in records.items():
        bucket = buckets.get(record.overall_status.upper())
        if bucket is None:
            logger.debug("Skipping %s with status %r", name, record.overall_status)
            continue
        bucket[name] = record


def collect_status(
    group: str,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
    collected_at: datetime | None = None,
) -> TabGroupSnapshot:
    """Fetch the tab group summary and return a classified snapshot.

    Raises FetchError or ParseError; no partial snapshot is returned.
    """
    snapshot = TabGroupSnapshot(
        name=group,
        collected_at=collected_at or datetime.now(UTC),
    )
    summary, url = get_summary(group, base_url=base_url, timeout=timeout)
    snapshot.summary_url = url

    records = {
        name: parse_job_record(name, entry, group=group, url=url)
        for name, entry in summary.items()
    }
    classify_jobs(snapshot, records)

    logger.info(
        "%s: %d jobs (%d flaking, %d failing, %d passing)",
        group, snapshot.count, len(snapshot.flaking),
        len(snapshot.failing), len(snapshot.passing),
    )
    return snapshot


def parse_tests(table: dict, group: str = "", job: str = "", url: str = "") -> list[TestResult]:
    """Extract name and original name from each test table row."""
    tests = table.get("tests")
    if tests is None:
        return []
    if not isinstance(tests, list):
        raise ParseError(
            "Field 'tests' must be a list", group=group, job=job, url=url,
        )

    results = []
    for i, test in enumerate(tests):
        if not isinstance(test, dict) or not isinstance(test.get("name"), str):
            raise ParseError(
                f"Test entry {i} has no string 'name'",
                group=group, job=job, url=url,
            )
        original = test.get("original-name")
        results.append(TestResult(
            name=test["name"],
            original_name=original if isinstance(original, str) else "",
        ))
    return results


def fetch_job_tests(
    group: str,
    job_name: str,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[list[TestResult], str, str]:
    """Fetch and sig-tag the tests of one job.

    Returns (tests, url, test_group_name). Raises FetchError or ParseError.
    """
    table, url = get_job_table(group, job_name, base_url=base_url, timeout=timeout)
    tests = tag_tests(parse_tests(table, group=group, job=job_name, url=url))
    test_group = table.get("test-group-name")
    return tests, url, test_group if isinstance(test_group, str) else ""


def enrich_job(
    snapshot: TabGroupSnapshot,
    job_name: str,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> JobRecord:
    """Attach the test table of a flaking or failing job to its record."""
    record = snapshot.flaking.get(job_name) or snapshot.failing.get(job_name)
    if record is None:
        raise KeyError(f"'{job_name}' is not a flaking or failing job of {snapshot.name}")

    tests, url, test_group = fetch_job_tests(
        snapshot.name, job_name, base_url=base_url, timeout=timeout,
    )
    record.url = url
    record.test_group_name = test_group
    record.tests = tests
    logger.debug("  %s: %d test(s)", job_name, len(tests))
    return record


def enrich_snapshot(
    snapshot: TabGroupSnapshot,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
    workers: int = 1,
    fail_fast: bool = False,
) -> list[JobError]:
    """Enrich every flaking and failing job of the snapshot.

    Failed jobs are logged, left un-enriched and returned as JobErrors while
    the remaining jobs continue. With fail_fast the first error is raised
    instead. Passing jobs are never fetched.
    """
    job_names = sorted(snapshot.flaking) + sorted(snapshot.failing)
    total = len(job_names)
    if not total:
        return []

    def _enrich(job_name: str) -> JobError | None:
        try:
            enrich_job(snapshot, job_name, base_url=base_url, timeout=timeout)
        except TestGridError as e:
            log_failure("Fetching test table", e, snapshot.name, job_name, e.url)
            if fail_fast:
                raise
            return JobError(group=snapshot.name, job=job_name, url=e.url, error=str(e))
        return None

    logger.info("Fetching test tables for %d job(s) in %s...", total, snapshot.name)
    if workers <= 1:
        results = []
        for i, job_name in enumerate(job_names, 1):
            logger.debug("[%d/%d] %s", i, total, job_name)
            results.append(_enrich(job_name))
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_enrich, job_names))

    errors = [r for r in results if r is not None]
    if errors:
        logger.warning(
            "%s: %d of %d job(s) could not be enriched",
            snapshot.name, len(errors), total,
        )
    return errors
