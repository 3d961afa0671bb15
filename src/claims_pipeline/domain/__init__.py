"""Domain public API."""

from claims_pipeline.domain.claims import (
    Claim,
    ClaimStatus,
    ClaimType,
    PatientDetails,
    ProviderDetails,
)
from claims_pipeline.domain.error_classifier import (
    DEFAULT_RETRY_POLICY,
    RetryPolicy,
    backoff_delay,
    classify_exception,
    classify_status,
    is_retriable,
)
from claims_pipeline.domain.errors import (
    ClassifiedError,
    ConnectorError,
    ErrorKind,
    JobError,
    JobNotFoundError,
    JobStateError,
    JobValidationError,
    OutboundRequestBlockedError,
    UnsafeNetworkPostureError,
)
from claims_pipeline.domain.jobs import (
    TERMINAL_JOB_STATUSES,
    Job,
    JobKind,
    JobStatus,
)
from claims_pipeline.domain.network import (
    DEFAULT_ALLOWED_PREFIXES,
    AllowlistDecision,
    EdiMode,
    HttpResponse,
)
from claims_pipeline.domain.ports import (
    ClaimRepository,
    ConnectorConfigRepository,
    ConnectorFactory,
    HttpClient,
    RailConnector,
)
from claims_pipeline.domain.rails import (
    ConnectorConfig,
    ConnectorMode,
    Rail,
    RailResult,
    parse_rail,
)

__all__ = [
    "AllowlistDecision",
    "Claim",
    "ClaimRepository",
    "ClaimStatus",
    "ClaimType",
    "ClassifiedError",
    "ConnectorConfig",
    "ConnectorConfigRepository",
    "ConnectorError",
    "ConnectorFactory",
    "ConnectorMode",
    "DEFAULT_ALLOWED_PREFIXES",
    "DEFAULT_RETRY_POLICY",
    "EdiMode",
    "ErrorKind",
    "HttpClient",
    "HttpResponse",
    "Job",
    "JobError",
    "JobKind",
    "JobNotFoundError",
    "JobStateError",
    "JobStatus",
    "JobValidationError",
    "OutboundRequestBlockedError",
    "PatientDetails",
    "ProviderDetails",
    "Rail",
    "RailConnector",
    "RailResult",
    "RetryPolicy",
    "TERMINAL_JOB_STATUSES",
    "UnsafeNetworkPostureError",
    "backoff_delay",
    "classify_exception",
    "classify_status",
    "is_retriable",
    "parse_rail",
]
