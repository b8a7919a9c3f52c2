"""AI Agents package."""

from moliya.agents.ai_agents import (
    ADVICE_FALLBACK,
    GeminiAdviceGenerator,
    GeminiIntentResolver,
    MalformedResponseError,
    extract_json_object,
)
from moliya.agents.interface import (
    AdviceGeneratorInterface,
    IntentResolverInterface,
)

__all__ = [
    "ADVICE_FALLBACK",
    "AdviceGeneratorInterface",
    "GeminiAdviceGenerator",
    "GeminiIntentResolver",
    "IntentResolverInterface",
    "MalformedResponseError",
    "extract_json_object",
]
