#!/usr/bin/env python3
"""Collect TestGrid tab group status and export one CSV row per test outcome.

For each tab group the summary is classified, flaking and failing jobs are
enriched with their sig-tagged tests, and the rows are written to a CSV file
(or stdout) for downstream analysis.
"""

import csv
import logging
import sys

from flaketrack.collect import collect_status, enrich_snapshot, log_failure
from flaketrack.models import JobError, TabGroupSnapshot
from flaketrack.testgrid import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, TestGridError

logger = logging.getLogger(__name__)

STATUS_OK = 0
STATUS_ERROR = 1

DEFAULT_GROUPS = ["sig-release-master-blocking", "sig-release-master-informing"]

FIELDNAMES = [
    "collected_at", "group", "status", "job_name",
    "sig", "test_name", "url",
]


def format_timestamp(snapshot: TabGroupSnapshot) -> str:
    return snapshot.collected_at.strftime("%Y-%m-%dT%H:%M:%SZ")


def emit(snapshot: TabGroupSnapshot) -> list[dict]:
    """Build report rows for a snapshot.

    Flaking and failing jobs get one row per test (none if the job has no
    tests); passing jobs get a single row with empty sig and test name.
    Rows follow bucket order, then job name, then test name.
    """
    collected_at = format_timestamp(snapshot)
    rows = []
    for _, jobs in snapshot.buckets():
        for job_name in sorted(jobs):
            job = jobs[job_name]
            base = {
                "collected_at": collected_at,
                "group": snapshot.name,
                "status": job.overall_status,
                "job_name": job_name,
                "url": job.url,
            }
            if jobs is snapshot.passing:
                rows.append({**base, "sig": "", "test_name": ""})
                continue
            for test in sorted(job.tests or [], key=lambda t: (t.name, t.original_name)):
                rows.append({**base, "sig": test.sig, "test_name": test.name})
    return rows


def write_report(rows: list[dict], output: str = "-") -> None:
    """Write rows as CSV with a header to a file path, or stdout for '-'."""
    if output == "-":
        _write_rows(rows, sys.stdout)
        return
    with open(output, "w", newline="") as f:
        _write_rows(rows, f)


def _write_rows(rows: list[dict], stream) -> None:
    writer = csv.DictWriter(stream, fieldnames=FIELDNAMES, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)


def _log_job_errors(errors: list[JobError]) -> None:
    for err in errors:
        logger.warning("  %s / %s: %s (%s)", err.group, err.job, err.error, err.url)


def run(
    groups: list[str] | None = None,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
    workers: int = 1,
    fail_fast: bool = False,
    output: str = "-",
) -> int:
    """Collect every group in turn and write the report. Returns status code.

    A group whose summary cannot be collected contributes no rows and makes
    the run fail; rows of the other groups are still written.
    """
    groups = groups or DEFAULT_GROUPS
    rows: list[dict] = []
    job_errors: list[JobError] = []
    failed_groups = []

    for group in groups:
        logger.info("Collecting status for %s...", group)
        try:
            snapshot = collect_status(group, base_url=base_url, timeout=timeout)
        except TestGridError as e:
            log_failure("Collecting summary", e, group, url=e.url)
            failed_groups.append(group)
            continue
        except ValueError as e:
            logger.error("%s", e)
            failed_groups.append(group)
            continue

        try:
            job_errors.extend(enrich_snapshot(
                snapshot, base_url=base_url, timeout=timeout,
                workers=workers, fail_fast=fail_fast,
            ))
        except TestGridError:
            failed_groups.append(group)
            continue

        group_rows = emit(snapshot)
        logger.info("%s: %d report row(s)", group, len(group_rows))
        rows.extend(group_rows)

    write_report(rows, output)
    if output != "-":
        logger.info("Wrote %d rows to %s", len(rows), output)

    if job_errors:
        logger.warning("%d job(s) could not be enriched:", len(job_errors))
        _log_job_errors(job_errors)

    if failed_groups:
        logger.error("Collection failed for: %s", ", ".join(failed_groups))
        return STATUS_ERROR
    return STATUS_OK


def summarize(
    groups: list[str] | None = None,
    base_url: str = DEFAULT_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """Log job counts per bucket for each group without fetching test tables."""
    groups = groups or DEFAULT_GROUPS
    rc = STATUS_OK
    for group in groups:
        try:
            snapshot = collect_status(group, base_url=base_url, timeout=timeout)
        except TestGridError as e:
            log_failure("Collecting summary", e, group, url=e.url)
            rc = STATUS_ERROR
            continue
        except ValueError as e:
            logger.error("%s", e)
            rc = STATUS_ERROR
            continue

        excluded = snapshot.count - sum(len(jobs) for _, jobs in snapshot.buckets())
        for status, jobs in snapshot.buckets():
            for name in sorted(jobs):
                logger.debug("  %-8s %s", status, name)
        if excluded:
            logger.info("%s: %d job(s) with other statuses", group, excluded)
    return rc
