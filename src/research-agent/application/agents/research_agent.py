"""Research Agent implementation.

This module drives a chat-completion model through web searches and page
fetches until it produces a final answer, expressed as an explicit state
machine over a single run:

    SEEDED -> AWAITING_MODEL -> (TOOL_DISPATCH -> AWAITING_MODEL)* -> DONE | EXHAUSTED | ERROR

A run is strictly sequential: one model call at a time, one tool at a time,
with the ``*_start`` and ``*_results`` events of a tool yielded directly
around its execution.
"""

import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from application.agents.agent_config import AgentConfig
from application.agents.base_agent import Agent, AgentError, AgentRunContext, ProgressEvent, RunState
from application.agents.llm_provider import GatewayConfig, LlmMessage, LlmProvider, LlmProviderError, LlmToolCall, strip_control_tokens
from observability import chat_run_duration, chat_runs_completed, chat_runs_exhausted, chat_runs_failed

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

    from application.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "AI not ready. Is the model server running?"


class ResearchAgent(Agent):
    """Agent that answers questions by searching and reading the web.

    Each call to :meth:`run_stream` owns a fresh :class:`AgentRunContext`;
    the only state shared between runs is read-only (configuration, tool
    declarations and the gateway readiness flag).

    Usage:
        agent = ResearchAgent(llm_provider, gateway_config, tool_registry, config)
        async for event in agent.run_stream("Who won the match last night?"):
            relay.emit(event)
    """

    def __init__(
        self,
        llm_provider: LlmProvider,
        gateway_config: GatewayConfig,
        tool_registry: "ToolRegistry",
        config: AgentConfig | None = None,
    ) -> None:
        super().__init__(llm_provider, gateway_config, config)
        self._tools = tool_registry

    async def run_stream(self, user_message: str) -> AsyncIterator[ProgressEvent]:
        """Run the research loop, yielding progress events.

        Args:
            user_message: The user's request text

        Yields:
            Tool progress events, then exactly one terminal event
        """
        start_time = time.time()
        run = AgentRunContext(user_message=user_message)

        if not self.is_ready:
            run.error = AgentError(NOT_READY_MESSAGE, "gateway_not_ready", is_retryable=True)
            run.state = RunState.ERROR
            logger.warning("Research run rejected: model gateway is not ready")
        else:
            logger.info(f"Research run started ({len(user_message)} chars, budget={self._config.max_iterations})")

        try:
            while not run.state.is_terminal:
                if run.state is RunState.SEEDED:
                    self._seed(run)
                elif run.state is RunState.AWAITING_MODEL:
                    await self._await_model(run)
                elif run.state is RunState.TOOL_DISPATCH:
                    async for event in self._dispatch_tools(run):
                        yield event
        except Exception as e:
            logger.exception(f"Research run failed unexpectedly: {e}")
            run.error = AgentError(str(e) or type(e).__name__, "unexpected_error")
            run.state = RunState.ERROR

        duration_ms = (time.time() - start_time) * 1000
        chat_run_duration.record(duration_ms, {"state": run.state.value})

        for event in self._terminal_events(run):
            yield event

    # =========================================================================
    # State handlers
    # =========================================================================

    def _seed(self, run: AgentRunContext) -> None:
        """SEEDED: system rules plus the user's request."""
        for message in self._build_messages(run.user_message):
            run.append(message)
        run.state = RunState.AWAITING_MODEL

    async def _await_model(self, run: AgentRunContext) -> None:
        """AWAITING_MODEL: one round-trip, or exhaustion when the budget is spent."""
        if run.round_trips >= self._config.max_iterations:
            logger.warning(f"Research run reached max iterations ({self._config.max_iterations})")
            run.final_content = self._config.exhausted_message
            run.state = RunState.EXHAUSTED
            return

        run.round_trips += 1
        logger.debug(f"Model round-trip {run.round_trips}/{self._config.max_iterations}")

        try:
            response = await self._llm.chat(run.transcript, tools=self._tools.definitions)
        except LlmProviderError as e:
            logger.error(f"Model gateway failed on round-trip {run.round_trips}: {e.message}")
            run.error = AgentError(e.message, e.error_code, e.is_retryable, e.details)
            run.state = RunState.ERROR
            return

        if response.has_tool_calls:
            tool_calls = list(response.tool_calls or [])
            run.append(LlmMessage.assistant(response.content, tool_calls=tool_calls))
            run.pending_tool_calls = tool_calls
            run.state = RunState.TOOL_DISPATCH
            return

        run.append(LlmMessage.assistant(response.content))
        run.final_content = strip_control_tokens(response.content)
        run.state = RunState.DONE

    async def _dispatch_tools(self, run: AgentRunContext) -> AsyncIterator[ProgressEvent]:
        """TOOL_DISPATCH: execute the batch in the order the model requested it."""
        tool_calls: list[LlmToolCall] = run.pending_tool_calls
        run.pending_tool_calls = []

        for tool_call in tool_calls:
            tool = self._tools.get(tool_call.name)
            if tool is None:
                logger.warning(f"Model requested unknown tool: {tool_call.name}")
                result = f"Unknown tool: {tool_call.name}"
            else:
                errors = self._tools.validate_arguments(tool.name, tool_call.arguments)
                if errors:
                    logger.warning(f"Invalid arguments for {tool.name}: {errors}")
                    result = f"Invalid arguments for {tool.name}: {'; '.join(errors)}"
                else:
                    yield tool.start_event(tool_call.arguments)
                    result = await self._tools.execute(tool, tool_call.arguments)
                    yield tool.results_event(tool_call.arguments, result)

            run.append(LlmMessage.tool_result(tool_call.id, result))

        run.state = RunState.AWAITING_MODEL

    def _terminal_events(self, run: AgentRunContext) -> list[ProgressEvent]:
        if run.state is RunState.ERROR:
            chat_runs_failed.add(1, {"error_code": run.error.error_code if run.error else "unknown"})
            return [ProgressEvent.error(run.error.message if run.error else "Unknown error")]

        content = run.final_content or ""
        if run.state is RunState.EXHAUSTED:
            chat_runs_exhausted.add(1)
            return [ProgressEvent.done(content)]

        chat_runs_completed.add(1, {"round_trips": run.round_trips})
        logger.info(f"Research run finished after {run.round_trips} round-trip(s) ({len(content)} chars)")
        if not content:
            return [ProgressEvent.done(content)]
        return [ProgressEvent.stream(content), ProgressEvent.done(content)]

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> "ResearchAgent":
        """Configure ResearchAgent in the service collection.

        Note: Requires LlmProvider, GatewayConfig and ToolRegistry to be registered first.

        Args:
            builder: The application builder

        Returns:
            The configured agent
        """
        from application.settings import app_settings
        from application.tools.registry import ToolRegistry

        def find_singleton(service_type):
            for desc in builder.services:
                if desc.service_type is service_type and desc.singleton:
                    return desc.singleton
            return None

        llm_provider = find_singleton(LlmProvider)
        gateway_config = find_singleton(GatewayConfig)
        tool_registry = find_singleton(ToolRegistry)

        if llm_provider is None or gateway_config is None or tool_registry is None:
            logger.error("LlmProvider, GatewayConfig and ToolRegistry must be registered before ResearchAgent.")
            raise RuntimeError("LlmProvider, GatewayConfig and ToolRegistry must be registered before ResearchAgent")

        config = AgentConfig(
            name=app_settings.agent_name,
            system_prompt=app_settings.agent_system_prompt,
            max_iterations=app_settings.agent_max_iterations,
            exhausted_message=app_settings.agent_exhausted_message,
        )

        agent = ResearchAgent(llm_provider, gateway_config, tool_registry, config)

        # Register as both concrete type and abstract interface
        builder.services.add_singleton(ResearchAgent, singleton=agent)
        builder.services.add_singleton(Agent, singleton=agent)

        logger.info(f"Configured ResearchAgent: name={config.name}, max_iterations={config.max_iterations}")
        return agent
