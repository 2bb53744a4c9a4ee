"""External packaging tool orchestration."""

from nuspec_builder.pack.orchestrator import (
    JobState,
    PackJob,
    PackOrchestrator,
    PackSummary,
    pack_manifests,
)

__all__ = [
    "JobState",
    "PackJob",
    "PackOrchestrator",
    "PackSummary",
    "pack_manifests",
]
