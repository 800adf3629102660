"""Business metrics for Research Agent service.

Defines OpenTelemetry metrics for:
- Chat: Inbound requests and research run outcomes
- LLM: Request latency and tool calls requested by the model
- Tools: Web search and page fetch execution
"""

from opentelemetry import metrics

meter = metrics.get_meter("research_agent")

# =============================================================================
# CHAT METRICS
# =============================================================================

chat_requests = meter.create_counter(
    name="research_agent.chat.requests",
    description="Total chat requests received from clients",
    unit="1",
)

chat_runs_completed = meter.create_counter(
    name="research_agent.chat.runs_completed",
    description="Research runs that ended with a final answer",
    unit="1",
)

chat_runs_failed = meter.create_counter(
    name="research_agent.chat.runs_failed",
    description="Research runs that ended with an error event",
    unit="1",
)

chat_runs_exhausted = meter.create_counter(
    name="research_agent.chat.runs_exhausted",
    description="Research runs that hit the iteration budget",
    unit="1",
)

chat_run_duration = meter.create_histogram(
    name="research_agent.chat.run_duration",
    description="Duration of a research run (request to terminal event)",
    unit="ms",
)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_request_count = meter.create_counter(
    name="research_agent.llm.request_count",
    description="Total chat-completion requests made",
    unit="1",
)

llm_request_time = meter.create_histogram(
    name="research_agent.llm.request_time",
    description="Time for chat-completion requests",
    unit="ms",
)

llm_tool_calls = meter.create_counter(
    name="research_agent.llm.tool_calls",
    description="Total tool calls requested by the model",
    unit="1",
)

# =============================================================================
# TOOL METRICS
# =============================================================================

tool_execution_count = meter.create_counter(
    name="research_agent.tools.execution_count",
    description="Total tool executions",
    unit="1",
)

tool_execution_time = meter.create_histogram(
    name="research_agent.tools.execution_time",
    description="Time to execute a tool",
    unit="ms",
)

tool_execution_errors = meter.create_counter(
    name="research_agent.tools.execution_errors",
    description="Tool executions that returned an error text",
    unit="1",
)
