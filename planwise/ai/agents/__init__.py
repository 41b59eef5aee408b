"""Agent implementations."""

from planwise.ai.agents.illustration import EnrichmentReport, EnrichmentTarget, IllustrationEnricher
from planwise.ai.agents.pattern_corrector import CorrectionReport, PatternExampleCorrector

__all__ = ["CorrectionReport", "EnrichmentReport", "EnrichmentTarget", "IllustrationEnricher", "PatternExampleCorrector"]
