"""
Job-related type definitions for internal use.

A job payload is a tagged variant keyed by ``(process, target_domain)``:

- ``GET`` against either domain reads a school record by MAC address
- ``UPDATE`` against ``ETA`` writes an ``UpdateEtaSchool`` record
- ``UPDATE`` against ``LIDER`` writes an ``UpdateLiderSchool`` record
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter
from pydantic.alias_generators import to_camel

from lider_gateway.constants import JobOutcome, JobProcess, PlatformType


class _CamelModel(BaseModel):
    """Base model accepting both camelCase and snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SchoolQuery(_CamelModel):
    """Lookup of a school device by MAC address."""

    mac_address: str = Field(..., min_length=1)
    hostname: str | None = None


class UpdateEtaSchool(_CamelModel):
    """Record written to the ETA directory."""

    mac_address: str = Field(..., min_length=1)
    school_code: str | None = None
    school_name: str | None = None
    hostname: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class UpdateLiderSchool(_CamelModel):
    """Record written to the LIDER directory."""

    mac_address: str = Field(..., min_length=1)
    school_code: str | None = None
    hostname: str | None = None
    ip_addresses: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class _JobDataBase(_CamelModel):
    key: str | None = None

    @property
    def correlation_key(self) -> str:
        """MAC address correlating the job with a device."""
        return self.data.mac_address  # type: ignore[attr-defined]


class ReadJobData(_JobDataBase):
    """Read a school record from either directory."""

    process: Literal["GET"] = "GET"
    target_domain: PlatformType
    data: SchoolQuery


class EtaUpdateJobData(_JobDataBase):
    """Write a school record to ETA."""

    process: Literal["UPDATE"] = "UPDATE"
    target_domain: Literal["ETA"] = "ETA"
    data: UpdateEtaSchool


class LiderUpdateJobData(_JobDataBase):
    """Write a school record to LIDER."""

    process: Literal["UPDATE"] = "UPDATE"
    target_domain: Literal["LIDER"] = "LIDER"
    data: UpdateLiderSchool


def _job_data_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        process = value.get("process")
        domain = value.get("targetDomain", value.get("target_domain"))
    else:
        process = getattr(value, "process", None)
        domain = getattr(value, "target_domain", None)

    if process == JobProcess.GET:
        return "read"
    if process == JobProcess.UPDATE and domain == PlatformType.ETA:
        return "eta_update"
    if process == JobProcess.UPDATE and domain == PlatformType.LIDER:
        return "lider_update"
    return None


JobData = Annotated[
    Union[
        Annotated[ReadJobData, Tag("read")],
        Annotated[EtaUpdateJobData, Tag("eta_update")],
        Annotated[LiderUpdateJobData, Tag("lider_update")],
    ],
    Discriminator(_job_data_tag),
]

_job_data_adapter: TypeAdapter[JobData] = TypeAdapter(JobData)


def parse_job_data(raw: dict[str, Any]) -> ReadJobData | EtaUpdateJobData | LiderUpdateJobData:
    """
    Validate a raw mapping into the matching payload variant.

    Raises:
        pydantic.ValidationError: If no variant matches or fields are invalid.
    """
    return _job_data_adapter.validate_python(raw)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    """
    A unit of retryable work held in a queue.

    Jobs are immutable; the store swaps in an updated copy so that a snapshot
    taken by a processing pass never changes underneath it.
    """

    id: str
    payload: ReadJobData | EtaUpdateJobData | LiderUpdateJobData
    retries_remaining: int
    scheduled_delay: int = 0
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payload": self.payload.model_dump(mode="json", by_alias=True),
            "retries_remaining": self.retries_remaining,
            "scheduled_delay": self.scheduled_delay,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class PassSummary:
    """
    Result of one processing pass over a queue.
    Returned by the scheduler for observability and tests.
    """

    queue_name: str
    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    outcomes: dict[str, JobOutcome] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def count(self, outcome: JobOutcome) -> int:
        """Number of jobs that ended the pass with the given outcome."""
        return sum(1 for value in self.outcomes.values() if value == outcome)
