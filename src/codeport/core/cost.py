"""Cost estimation for planned runs."""

from enum import Enum
from typing import Optional

from litellm import cost_per_token

from codeport.core.types import RunPlan
from codeport.utils.logging import get_logger

logger = get_logger(__name__)

# Rough size of the instructions wrapped around every chunk
PROMPT_OVERHEAD_TOKENS = 150

# Assumed output speed of hosted models
TOKENS_PER_SECOND = 40


class CostLevel(str, Enum):
    """Cost level classification."""

    LOW = "low"  # < $1
    MEDIUM = "medium"  # $1-$5
    HIGH = "high"  # $5-$20
    VERY_HIGH = "very_high"  # > $20


def get_cost_level(cost: float) -> CostLevel:
    """Get the cost level classification.

    Args:
        cost: Estimated cost in USD

    Returns:
        Cost level classification
    """
    if cost < 1.0:
        return CostLevel.LOW
    elif cost < 5.0:
        return CostLevel.MEDIUM
    elif cost < 20.0:
        return CostLevel.HIGH
    else:
        return CostLevel.VERY_HIGH


def estimate_tokens(size_bytes: int) -> int:
    """Estimate tokens for source text: 1 token per 4 bytes, rounded up."""
    return -(-size_bytes // 4)


class CostEstimate:
    """Cost estimate for a translation run."""

    def __init__(
        self,
        estimated_tokens: int,
        estimated_cost: Optional[float],
        estimated_time: float,
        warnings: list[str],
    ) -> None:
        """Initialize cost estimate.

        Args:
            estimated_tokens: Estimated number of tokens
            estimated_cost: Estimated cost in USD, or None if the model has no known pricing
            estimated_time: Estimated time in seconds
            warnings: List of warning messages
        """
        self.estimated_tokens = estimated_tokens
        self.estimated_cost = estimated_cost
        self.estimated_time = estimated_time
        self.warnings = warnings
        self.cost_level = get_cost_level(estimated_cost or 0.0)


def estimate_cost(plan: RunPlan, model_name: str, concurrency: int = 1) -> CostEstimate:
    """Estimate the cost of running a plan.

    Input and output are assumed to be about the same size, plus the prompt
    overhead of every request.

    Args:
        plan: The planned run
        model_name: LiteLLM model string used for pricing
        concurrency: Number of units translated at once

    Returns:
        CostEstimate with token count, cost, time and warnings
    """
    output_tokens = estimate_tokens(plan.total_bytes)
    input_tokens = output_tokens + plan.total_requests * PROMPT_OVERHEAD_TOKENS

    warnings: list[str] = []
    estimated_cost: Optional[float]
    try:
        prompt_cost, completion_cost = cost_per_token(
            model=model_name,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        )
        estimated_cost = prompt_cost + completion_cost
    except Exception as e:
        logger.debug("No pricing for model", model=model_name, error=str(e))
        estimated_cost = None
        warnings.append(f"No pricing known for model '{model_name}'; cost cannot be estimated.")

    estimated_time = output_tokens / TOKENS_PER_SECOND / max(concurrency, 1)

    if plan.failed:
        warnings.append(f"{len(plan.failed)} file(s) cannot be translated and will be reported as failed.")

    split = sum(1 for unit in plan.units if unit.requests > 1)
    if split:
        warnings.append(
            f"{split} file(s) exceed the chunk size and will be translated in parts."
        )

    return CostEstimate(
        estimated_tokens=input_tokens + output_tokens,
        estimated_cost=estimated_cost,
        estimated_time=estimated_time,
        warnings=warnings,
    )
