"""Pipeline orchestration."""

from skycast.pipeline.orchestrator import Pipeline, PipelinePolicies
from skycast.pipeline.status import BatchFailure, PipelineStatus, RunOutcome, RunResult

__all__ = [
    "BatchFailure",
    "Pipeline",
    "PipelinePolicies",
    "PipelineStatus",
    "RunOutcome",
    "RunResult",
]
