"""Card pipeline orchestration: ports, in-memory adapters, retry and steps."""

from .queue import InMemoryCardQueue
from .retry import RetryPolicies, RetryPolicy, run_with_retry
from .service import CardPipelineOrchestrator
from .steps import DEFAULT_STEPS, PipelineResult, StepContext, StepName, StepOutcome, StepRegistry
from .store import InMemoryAssetStorage, InMemoryCardStore, new_card_id

__all__ = [
    "CardPipelineOrchestrator",
    "DEFAULT_STEPS",
    "InMemoryAssetStorage",
    "InMemoryCardQueue",
    "InMemoryCardStore",
    "PipelineResult",
    "RetryPolicies",
    "RetryPolicy",
    "StepContext",
    "StepName",
    "StepOutcome",
    "StepRegistry",
    "new_card_id",
    "run_with_retry",
]
