"""Unit tests for the ResearchAgent state machine.

Tests cover:
- Event ordering for tool batches and final answers
- Determinism for identical gateway and tool responses
- Iteration budget exhaustion
- Transcript referential integrity
- Tool failures continuing the run
- Gateway failures ending the run with exactly one error event
- Readiness gating, unknown tools and invalid arguments
"""

import httpx
import pytest
from conftest import (
    SEARCH_URL,
    collect,
    final_response,
    html_handler,
    json_handler,
    make_agent,
    make_registry,
    recording_transport,
    searxng_payload,
    tool_call_response,
)

from application.agents.base_agent import ProgressEventType
from application.agents.llm_provider import LlmMessageRole, LlmProviderError
from application.agents.research_agent import NOT_READY_MESSAGE
from application.tools import PageFetchTool, ToolRegistry, WebSearchTool

PARIS_RESULTS = searxng_payload(
    {
        "title": "Paris weather today",
        "content": "Sunny, 18°C, light wind from the west.",
        "url": "https://weather.example/paris",
        "publishedDate": "2026-10-17T06:00:00",
    }
)


def event_types(events: list[dict]) -> list[str]:
    return [e["type"] for e in events]


class TestParisWeatherScenario:
    """End-to-end run: one recent search, then a final answer."""

    @pytest.mark.asyncio
    async def test_events_in_order_and_recent_search(self) -> None:
        """search_start, search_results, stream, done with a day-bounded search."""
        transport, seen = recording_transport(json_handler(PARIS_RESULTS))
        registry = ToolRegistry(
            [
                WebSearchTool(search_url=SEARCH_URL, transport=transport),
                PageFetchTool(user_agent="test-agent"),
            ]
        )
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "weather Paris today"})),
                final_response("It is sunny and 18°C in Paris today."),
            ],
            registry=registry,
        )

        events = await collect(agent, "what's today's weather in Paris")

        assert event_types(events) == ["search_start", "search_results", "stream", "done"]
        assert events[0] == {"type": "search_start", "query": "weather Paris today"}
        assert "Sunny, 18°C" in events[1]["results"]
        assert events[2] == {"type": "stream", "content": "It is sunny and 18°C in Paris today."}
        assert events[3] == {"type": "done", "content": "It is sunny and 18°C in Paris today."}

        assert len(seen) == 1
        assert seen[0].url.params["time_range"] == "day"
        assert seen[0].url.params["categories"] == "news,general"
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_seed_transcript(self) -> None:
        """The first model call sees exactly one system and one user message."""
        agent, provider = make_agent([final_response("Hello")])

        await collect(agent, "hi there")

        first = provider.calls[0]
        assert [m.role for m in first] == [LlmMessageRole.SYSTEM, LlmMessageRole.USER]
        assert first[0].content == agent.config.system_prompt
        assert first[1].content == "hi there"

    @pytest.mark.asyncio
    async def test_tool_declarations_on_every_call(self) -> None:
        """Both tools are declared on every model round-trip."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "python release"})),
                final_response("Done"),
            ]
        )

        await collect(agent, "latest python release")

        for tools in provider.tools_seen:
            assert [t.name for t in tools] == ["web_search", "fetch_url"]


class TestDeterminism:
    """Replaying identical responses yields identical runs."""

    @staticmethod
    def script() -> list:
        return [
            tool_call_response(("web_search", {"query": "latest news"}), ("fetch_url", {"url": "https://news.example/a"})),
            tool_call_response(("web_search", {"query": "follow-up"}), id_prefix="second"),
            final_response("Summary of the news."),
        ]

    @pytest.mark.asyncio
    async def test_identical_event_sequences_and_transcripts(self) -> None:
        """Two runs over the same script produce the same events and transcripts."""
        registry = make_registry(
            search_handler=json_handler(PARIS_RESULTS),
            fetch_handler=html_handler("<html><body><h1>Story</h1><p>Details</p></body></html>"),
        )
        agent_a, provider_a = make_agent(self.script(), registry=registry)
        agent_b, provider_b = make_agent(self.script(), registry=registry)

        events_a = await collect(agent_a, "what's the latest news")
        events_b = await collect(agent_b, "what's the latest news")

        assert events_a == events_b
        assert provider_a.calls == provider_b.calls
        assert event_types(events_a) == [
            "search_start",
            "search_results",
            "fetch_start",
            "fetch_results",
            "search_start",
            "search_results",
            "stream",
            "done",
        ]

    @pytest.mark.asyncio
    async def test_batch_executes_in_requested_order(self) -> None:
        """Tool calls run in the order the model listed them."""
        agent, _ = make_agent(
            [
                tool_call_response(("fetch_url", {"url": "https://a.example"}), ("web_search", {"query": "b"})),
                final_response("ok"),
            ]
        )

        events = await collect(agent, "question")

        assert event_types(events)[:4] == ["fetch_start", "fetch_results", "search_start", "search_results"]
        assert events[0]["url"] == "https://a.example"


class TestIterationBudget:
    """The number of model round-trips never exceeds the budget."""

    @pytest.mark.asyncio
    async def test_exhaustion_ends_with_done(self) -> None:
        """Hitting the budget emits the fixed apology through done, not error."""
        script = [tool_call_response(("web_search", {"query": f"attempt {i}"}), id_prefix=f"r{i}") for i in range(3)]
        agent, provider = make_agent(script, max_iterations=3)

        events = await collect(agent, "an unanswerable question")

        assert len(provider.calls) == 3
        assert events[-1] == {"type": "done", "content": agent.config.exhausted_message}
        assert ProgressEventType.ERROR.value not in event_types(events)
        assert ProgressEventType.STREAM.value not in event_types(events)
        assert event_types(events).count("search_start") == 3

    @pytest.mark.asyncio
    async def test_default_budget_is_eight(self) -> None:
        """With the default configuration the ninth round-trip never happens."""
        script = [tool_call_response(("web_search", {"query": f"q{i}"}), id_prefix=f"r{i}") for i in range(8)]
        agent, provider = make_agent(script)

        events = await collect(agent, "question")

        assert agent.config.max_iterations == 8
        assert len(provider.calls) == 8
        assert events[-1]["type"] == "done"

    @pytest.mark.asyncio
    async def test_answer_on_last_round_trip_is_not_exhaustion(self) -> None:
        """A final answer on the last allowed round-trip is a normal finish."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "q"})),
                final_response("Found it."),
            ],
            max_iterations=2,
        )

        events = await collect(agent, "question")

        assert len(provider.calls) == 2
        assert events[-2:] == [{"type": "stream", "content": "Found it."}, {"type": "done", "content": "Found it."}]


class TestTranscriptIntegrity:
    """Tool messages always answer a call from the preceding assistant message."""

    @pytest.mark.asyncio
    async def test_tool_call_ids_match_preceding_assistant(self) -> None:
        """Every tool message's id appears in the nearest assistant message before it."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "a"}), ("fetch_url", {"url": "https://x.example"})),
                tool_call_response(("unknown_tool", {}), ("web_search", {}), id_prefix="second"),
                final_response("answer"),
            ]
        )

        await collect(agent, "question")

        transcript = provider.calls[-1]
        for index, message in enumerate(transcript):
            if message.role is not LlmMessageRole.TOOL:
                continue
            previous = index - 1
            while transcript[previous].role is LlmMessageRole.TOOL:
                previous -= 1
            assistant = transcript[previous]
            assert assistant.role is LlmMessageRole.ASSISTANT
            assert message.tool_call_id in {tc.id for tc in assistant.tool_calls}

    @pytest.mark.asyncio
    async def test_transcript_is_append_only(self) -> None:
        """Each model call sees the previous transcript as an unchanged prefix."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "a"})),
                tool_call_response(("fetch_url", {"url": "https://x.example"}), id_prefix="second"),
                final_response("answer"),
            ]
        )

        await collect(agent, "question")

        for earlier, later in zip(provider.calls, provider.calls[1:]):
            assert later[: len(earlier)] == earlier
            assert len(later) > len(earlier)

    @pytest.mark.asyncio
    async def test_assistant_tool_call_message_precedes_results(self) -> None:
        """The assistant message carrying the calls is appended before any result."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "a"}), ("web_search", {"query": "b"})),
                final_response("answer"),
            ]
        )

        await collect(agent, "question")

        second = provider.calls[1]
        assert [m.role for m in second[2:]] == [LlmMessageRole.ASSISTANT, LlmMessageRole.TOOL, LlmMessageRole.TOOL]
        assert [m.tool_call_id for m in second[3:]] == ["call_0", "call_1"]


class TestToolFailures:
    """Tool failures become text results and the run goes on."""

    @pytest.mark.asyncio
    async def test_search_http_error_continues(self) -> None:
        """A 500 from the search service is handed to the model as text."""
        registry = make_registry(search_handler=json_handler({"error": "down"}, status_code=500))
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "a"})),
                final_response("I could not search right now."),
            ],
            registry=registry,
        )

        events = await collect(agent, "question")

        assert event_types(events) == ["search_start", "search_results", "stream", "done"]
        assert events[1]["results"] == "Search error: 500"
        assert len(provider.calls) == 2
        assert provider.calls[1][-1].content == "Search error: 500"

    @pytest.mark.asyncio
    async def test_fetch_network_error_continues(self) -> None:
        """A transport failure on fetch is a result, not an aborted run."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        agent, provider = make_agent(
            [
                tool_call_response(("fetch_url", {"url": "https://down.example"})),
                final_response("The page is unreachable."),
            ],
            registry=make_registry(fetch_handler=refuse),
        )

        events = await collect(agent, "question")

        assert event_types(events) == ["fetch_start", "fetch_results", "stream", "done"]
        assert provider.calls[1][-1].content == "Fetch failed: connection refused"

    @pytest.mark.asyncio
    async def test_malformed_search_payload_continues(self) -> None:
        """Null entries in the search results do not end the run."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "latest news"})),
                final_response("Here is what I found."),
            ],
            registry=make_registry(search_handler=json_handler({"results": [None, {"title": "t"}]})),
        )

        events = await collect(agent, "question")

        assert event_types(events) == ["search_start", "search_results", "stream", "done"]
        assert provider.calls[1][-1].content == "1. t\n   No description"

    @pytest.mark.asyncio
    async def test_zero_results_marker_continues(self) -> None:
        """An empty result set yields the no-results marker and another round-trip."""
        agent, provider = make_agent(
            [
                tool_call_response(("web_search", {"query": "nothing matches"})),
                final_response("Nothing found."),
            ],
            registry=make_registry(search_handler=json_handler(searxng_payload())),
        )

        events = await collect(agent, "question")

        assert events[1] == {"type": "search_results", "results": "No search results found."}
        assert provider.calls[1][-1].content == "No search results found."

    @pytest.mark.asyncio
    async def test_unknown_tool_and_invalid_arguments(self) -> None:
        """Neither emits progress events, both produce a tool message."""
        agent, provider = make_agent(
            [
                tool_call_response(("translate", {"text": "hi"}), ("web_search", {})),
                final_response("ok"),
            ]
        )

        events = await collect(agent, "question")

        assert event_types(events) == ["stream", "done"]
        results = [m.content for m in provider.calls[1] if m.role is LlmMessageRole.TOOL]
        assert results[0] == "Unknown tool: translate"
        assert results[1] == "Invalid arguments for web_search: root: 'query' is a required property"


class TestGatewayFailures:
    """A gateway failure ends the run with exactly one error event."""

    @pytest.mark.asyncio
    async def test_first_call_failure(self) -> None:
        """A 500 on the first round-trip yields only the error event."""
        error = LlmProviderError("Model server error: 500", "llm_server_error", "scripted", is_retryable=True)
        agent, provider = make_agent([error])

        events = await collect(agent, "question")

        assert events == [{"type": "error", "message": "Model server error: 500"}]
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_after_tool_batch(self) -> None:
        """Progress already made stays visible, the error is last, nothing follows."""
        error = LlmProviderError("Model server error: 500", "llm_server_error", "scripted")
        agent, _ = make_agent([tool_call_response(("web_search", {"query": "a"})), error])

        events = await collect(agent, "question")

        assert event_types(events) == ["search_start", "search_results", "error"]
        assert event_types(events).count("error") == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self) -> None:
        """Anything else escaping the gateway is still a single error event."""
        agent, _ = make_agent([RuntimeError("socket exploded")])

        events = await collect(agent, "question")

        assert events == [{"type": "error", "message": "socket exploded"}]

    @pytest.mark.asyncio
    async def test_not_ready_gateway(self) -> None:
        """Without a successful probe the model is never called."""
        agent, provider = make_agent([final_response("never")], ready=False)

        events = await collect(agent, "question")

        assert events == [{"type": "error", "message": NOT_READY_MESSAGE}]
        assert provider.calls == []


class TestFinalContent:
    """Final answers are sanitized before they reach the client."""

    @pytest.mark.asyncio
    async def test_control_tokens_stripped(self) -> None:
        """Only the final channel's text is streamed."""
        raw = "<|channel|>analysis<|message|>thinking...<|end|><|start|>assistant<|channel|>final<|message|>The answer is 42.<|end|>"
        agent, provider = make_agent([final_response(raw)])

        events = await collect(agent, "question")

        assert events == [
            {"type": "stream", "content": "The answer is 42."},
            {"type": "done", "content": "The answer is 42."},
        ]

    @pytest.mark.asyncio
    async def test_empty_answer_skips_stream(self) -> None:
        """An empty final answer still terminates with done."""
        agent, _ = make_agent([final_response("<|end|>")])

        events = await collect(agent, "question")

        assert events == [{"type": "done", "content": ""}]


class TestStreamingTiming:
    """Progress events are yielded around each tool execution, not batched."""

    @pytest.mark.asyncio
    async def test_start_event_precedes_execution(self) -> None:
        """The start event is observable before the search request is sent."""
        transport, seen = recording_transport(json_handler(PARIS_RESULTS))
        registry = ToolRegistry([WebSearchTool(search_url=SEARCH_URL, transport=transport), PageFetchTool(user_agent="t")])
        agent, _ = make_agent(
            [tool_call_response(("web_search", {"query": "a"})), final_response("ok")],
            registry=registry,
        )

        stream = agent.run_stream("question")
        first = await stream.__anext__()
        assert first.type is ProgressEventType.SEARCH_START
        assert seen == []

        second = await stream.__anext__()
        assert second.type is ProgressEventType.SEARCH_RESULTS
        assert len(seen) == 1

        remaining = [event async for event in stream]
        assert [e.type for e in remaining] == [ProgressEventType.STREAM, ProgressEventType.DONE]
