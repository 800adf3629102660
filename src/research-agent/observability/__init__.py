"""Observability utilities and metrics for Research Agent."""

from .metrics import (
    chat_requests,
    chat_run_duration,
    chat_runs_completed,
    chat_runs_exhausted,
    chat_runs_failed,
    llm_request_count,
    llm_request_time,
    llm_tool_calls,
    tool_execution_count,
    tool_execution_errors,
    tool_execution_time,
)

__all__ = [
    # Chat metrics
    "chat_requests",
    "chat_runs_completed",
    "chat_runs_failed",
    "chat_runs_exhausted",
    "chat_run_duration",
    # LLM metrics
    "llm_request_count",
    "llm_request_time",
    "llm_tool_calls",
    # Tool metrics
    "tool_execution_count",
    "tool_execution_time",
    "tool_execution_errors",
]
