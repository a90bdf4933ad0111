"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class AppLevel(StrEnum):
    """Deployment level of the running application."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"


class QueueName(StrEnum):
    """Well-known queue names."""

    ETA_LIDER_TASK = "etaLiderTask"


class JobProcess(StrEnum):
    """Job process discriminator."""

    GET = "GET"
    UPDATE = "UPDATE"


class PlatformType(StrEnum):
    """Target domain a job is routed to."""

    ETA = "ETA"
    LIDER = "LIDER"


class JobOutcome(StrEnum):
    """
    Per-job result of a processing pass.

    - SUCCESS: dispatch succeeded, job removed
    - RETRY: dispatch failed, job kept with one less retry
    - DROPPED: dispatch failed with no retries left, job removed
    """

    SUCCESS = "success"
    RETRY = "retry"
    DROPPED = "dropped"


class SchedulerState(StrEnum):
    """Scheduler states. IDLE -> PROCESSING on tick, back to IDLE when the pass ends."""

    IDLE = "idle"
    PROCESSING = "processing"


# Default values
DEFAULT_RETRIES = 3
DEFAULT_DELAY_MS = 0
DEFAULT_CRON_EXPRESSION = "0 * * * * *"

# Relay endpoints
LIDER_REGISTER_ENDPOINT = "/api/register"
ETA_LIDER_ENDPOINT = "/api/eta-lider"

# API constants
API_V1_PREFIX = "/v1"
API_KEY_HEADER = "api-key"
CUSTOM_LANG_HEADER = "x-custom-lang"
LANG_QUERY_PARAMS = ("lang", "l")
SUPPORTED_LANGUAGES = ("en", "tr")

# Paths that bypass rate limiting
UNTHROTTLED_PATHS = frozenset(
    {"/health", "/ready", "/live", "/metrics", "/docs", "/openapi.json"}
)

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOB_OUTCOMES = "job_outcomes_total"
METRIC_DISPATCH_DURATION = "job_dispatch_duration_seconds"
METRIC_PASSES = "queue_passes_total"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_PROCESS_QUEUE = "process_queue"
SPAN_DISPATCH_JOB = "dispatch_job"
