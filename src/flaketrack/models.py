"""Data structures for one collection run against a TestGrid tab group."""

from dataclasses import dataclass, field
from datetime import datetime

STATUS_FLAKY = "FLAKY"
STATUS_FAILING = "FAILING"
STATUS_PASSING = "PASSING"

SIG_JOB_OWNER = "job-owner"


@dataclass
class TestResult:
    """One row of a job's test table."""

    __test__ = False

    name: str
    original_name: str = ""
    sig: str = ""


@dataclass
class JobRecord:
    """Last known status of a single job in a tab group.

    tests stays None until the job is enriched from its test table; it is
    then replaced in one step with the full list from a single fetch.
    """

    overall_status: str = ""
    alert: str = ""
    last_run: int = 0
    last_update: int = 0
    latest_green: str = ""
    status_icon: str = ""
    status_description: str = ""
    url: str = ""
    test_group_name: str = ""
    tests: list[TestResult] | None = None

    @property
    def enriched(self) -> bool:
        return self.tests is not None


@dataclass
class JobError:
    """A job whose test table could not be collected."""

    group: str
    job: str
    url: str
    error: str


@dataclass
class TabGroupSnapshot:
    """Status of every job in one tab group at a point in time.

    A job name appears in at most one of flaking, failing and passing.
    count includes jobs whose status matched none of the buckets.
    """

    name: str
    collected_at: datetime
    summary_url: str = ""
    count: int = 0
    flaking: dict[str, JobRecord] = field(default_factory=dict)
    failing: dict[str, JobRecord] = field(default_factory=dict)
    passing: dict[str, JobRecord] = field(default_factory=dict)

    def buckets(self) -> list[tuple[str, dict[str, JobRecord]]]:
        """Return (status, jobs) pairs in report order."""
        return [
            (STATUS_FLAKY, self.flaking),
            (STATUS_FAILING, self.failing),
            (STATUS_PASSING, self.passing),
        ]
