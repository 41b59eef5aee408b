"""Data contracts shared across the lesson pipeline."""

from planwise.ai.pipeline.contracts import CORRECTION_SAMPLING, PRIMARY_SAMPLING, GenerationRequest, OutcomeKind, ProviderOutcome, RawProviderResponse, SamplingConfig, UsageRecord

__all__ = ["CORRECTION_SAMPLING", "PRIMARY_SAMPLING", "GenerationRequest", "OutcomeKind", "ProviderOutcome", "RawProviderResponse", "SamplingConfig", "UsageRecord"]
