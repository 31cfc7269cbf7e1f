"""Common typed models shared across source adapters."""

from .schemas import (
    InvocationRequest,
    NormalizedContract,
    NormalizedExclusion,
    NormalizedFpdsAward,
    NormalizedGrant,
    NormalizedLaborRate,
    NormalizedNsfAward,
    NormalizedOpportunity,
    NormalizedSamEntity,
    NormalizedSbirAward,
    NormalizedSubaward,
    RawRecord,
    RunSummary,
    SourceResult,
)

__all__ = [
    "RawRecord",
    "NormalizedContract",
    "NormalizedGrant",
    "NormalizedSubaward",
    "NormalizedOpportunity",
    "NormalizedSbirAward",
    "NormalizedNsfAward",
    "NormalizedSamEntity",
    "NormalizedExclusion",
    "NormalizedFpdsAward",
    "NormalizedLaborRate",
    "InvocationRequest",
    "SourceResult",
    "RunSummary",
]
