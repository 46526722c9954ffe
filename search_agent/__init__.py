"""Agentic web search chat: tool-use loop over a chat model and Tavily."""

from .orchestration import ChatSession, Orchestrator, RunConfig, RunFailure, RunResult

__all__ = [
    "Orchestrator",
    "ChatSession",
    "RunConfig",
    "RunResult",
    "RunFailure",
]
