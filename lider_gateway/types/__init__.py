"""
Type definitions for the gateway.
Contains input/output type definitions for all functions, grouped by module.
"""

from lider_gateway.types.api import (
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    JobResponse,
    PassSummaryResponse,
    QueueResponse,
    RegisterRequest,
)
from lider_gateway.types.events import JobEvent
from lider_gateway.types.job import (
    EtaUpdateJobData,
    Job,
    JobData,
    LiderUpdateJobData,
    PassSummary,
    ReadJobData,
    SchoolQuery,
    UpdateEtaSchool,
    UpdateLiderSchool,
    parse_job_data,
)

__all__ = [
    # API types
    "EnqueueRequest",
    "EnqueueResponse",
    "JobResponse",
    "QueueResponse",
    "PassSummaryResponse",
    "RegisterRequest",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "Job",
    "JobData",
    "ReadJobData",
    "EtaUpdateJobData",
    "LiderUpdateJobData",
    "SchoolQuery",
    "UpdateEtaSchool",
    "UpdateLiderSchool",
    "PassSummary",
    "parse_job_data",
    # Event types
    "JobEvent",
]
