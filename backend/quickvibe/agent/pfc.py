"""Token accounting for generations.

Usage is expressed against a 200k token context window. The "traditional"
figure is the token count an unstructured prompt would be expected to use,
assuming structured prompting saves 80%.
"""

from dataclasses import dataclass

MAX_CONTEXT_TOKENS = 200_000
PFC_EFFICIENCY = 0.2

PLAN_TOKEN_LIMITS = {
    "FREE": 10_000,
    "PRO": 100_000,
    "BUSINESS": 500_000,
    "ENTERPRISE": 2_000_000,
}


@dataclass
class PFCMetrics:
    tokens_used: int
    context_percentage: float
    pfc_saved: int
    traditional_cost: int
    actual_cost: int


def context_percentage(tokens_used: int) -> float:
    return round(tokens_used / MAX_CONTEXT_TOKENS * 100, 2)


def estimate_traditional_tokens(tokens_used: int) -> int:
    return round(tokens_used / PFC_EFFICIENCY)


def pfc_savings(tokens_used: int) -> int:
    return estimate_traditional_tokens(tokens_used) - tokens_used


def token_limit_for_plan(plan: str) -> int:
    return PLAN_TOKEN_LIMITS.get(plan, 0)


def compute_metrics(tokens_used: int, saved_tokens: int = 0) -> PFCMetrics:
    return PFCMetrics(
        tokens_used=tokens_used,
        context_percentage=context_percentage(tokens_used),
        pfc_saved=saved_tokens if saved_tokens > 0 else pfc_savings(tokens_used),
        traditional_cost=estimate_traditional_tokens(tokens_used),
        actual_cost=tokens_used,
    )
