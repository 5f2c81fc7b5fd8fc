"""AI agents package."""

from money_mates.agents.text_completion import (
    CompletionFailedError,
    GeminiTextCompletion,
    MissingCredentialError,
    TextCompletionClient,
    TextCompletionError,
)
from money_mates.agents.ai_agents import CoachAgent, CoachSnapshot, DecisionAgent

__all__ = [
    "CoachAgent",
    "CoachSnapshot",
    "CompletionFailedError",
    "DecisionAgent",
    "GeminiTextCompletion",
    "MissingCredentialError",
    "TextCompletionClient",
    "TextCompletionError",
]
