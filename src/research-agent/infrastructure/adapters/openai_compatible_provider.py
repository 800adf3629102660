"""OpenAI-compatible LLM Provider implementation.

This module provides the Model Gateway for local model servers that speak
the OpenAI REST dialect (LM Studio, llama.cpp server, vLLM, ...).

Features:
- Non-streaming chat completions with tool/function calling
- Model discovery through ``GET /models`` (startup probe)
- Optional bearer token authentication
- OpenTelemetry tracing and metrics
"""

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

import httpx
from opentelemetry import trace

from application.agents.llm_provider import GatewayConfig, LlmConfig, LlmMessage, LlmProvider, LlmProviderError, LlmResponse, LlmToolCall, LlmToolDefinition
from observability import llm_request_count, llm_request_time, llm_tool_calls

if TYPE_CHECKING:
    from neuroglia.hosting.abstractions import ApplicationBuilderBase

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def display_name_from_model_id(model_id: str, default: str) -> str:
    """Turn a served model id into a short display name.

    ``"lmstudio-community/gpt-oss-20b.gguf"`` becomes ``"gpt-oss-20b"``.
    """
    name = (model_id or "").split("/")[-1]
    if name.endswith(".gguf"):
        name = name[: -len(".gguf")]
    return name or default


class OpenAiCompatibleLlmProvider(LlmProvider):
    """Model Gateway for OpenAI-compatible chat-completion endpoints.

    Configuration:
        - base_url: API root including the version (e.g., "http://localhost:1234/v1")
        - model: Value sent as ``model`` in chat requests (e.g., "local-model")
        - api_key: Optional bearer token
        - extra["default_display_name"]: Display name used until a probe discovers one
        - extra["probe_timeout"]: Timeout in seconds for the ``/models`` probe

    Usage:
        config = LlmConfig(model="local-model", base_url="http://localhost:1234/v1", max_tokens=1000)
        provider = OpenAiCompatibleLlmProvider(config, GatewayConfig())
        await provider.probe()
        response = await provider.chat([LlmMessage.user("Hello!")])
    """

    PROVIDER_NAME = "openai_compatible"

    def __init__(
        self,
        config: LlmConfig,
        gateway_config: GatewayConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: LLM configuration
            gateway_config: Shared readiness object refreshed by :meth:`probe`
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        super().__init__(config)
        self._base_url = (config.base_url or "http://localhost:1234/v1").rstrip("/")
        self._gateway_config = gateway_config
        self._default_display_name = config.extra.get("default_display_name", "gpt-oss")
        self._probe_timeout = config.extra.get("probe_timeout", 5.0)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider_name(self) -> str:
        return self.PROVIDER_NAME

    @property
    def gateway_config(self) -> GatewayConfig:
        return self._gateway_config

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _convert_messages(self, messages: list[LlmMessage]) -> list[dict[str, Any]]:
        """Convert LlmMessage list to OpenAI format.

        Tool-call arguments go back on the wire as JSON strings, the way the
        model produced them.
        """
        openai_messages = []
        for msg in messages:
            openai_msg: dict[str, Any] = {
                "role": msg.role.value,
                "content": msg.content or "",
            }

            if msg.tool_calls:
                openai_msg["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments),
                        },
                    }
                    for tc in msg.tool_calls
                ]

            if msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id

            openai_messages.append(openai_msg)

        return openai_messages

    def _parse_tool_calls(self, openai_tool_calls: list[dict[str, Any]]) -> list[LlmToolCall]:
        """Parse tool calls from an OpenAI response.

        Malformed or non-object arguments become an empty dict rather than an
        error; a missing id is replaced with a generated one.
        """
        tool_calls = []
        for tc in openai_tool_calls:
            func = tc.get("function") or {}
            arguments = func.get("arguments") or "{}"

            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    logger.warning(f"Malformed arguments for tool call {func.get('name')!r}, using empty arguments")
                    arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}

            tool_calls.append(
                LlmToolCall(
                    id=tc.get("id") or f"call_{uuid4().hex}",
                    name=func.get("name", ""),
                    arguments=arguments,
                )
            )
        return tool_calls

    def _build_request_body(
        self,
        messages: list[LlmMessage],
        tools: Optional[list[LlmToolDefinition]],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._config.model,
            "messages": self._convert_messages(messages),
            "temperature": self._config.temperature,
            "stream": False,
        }

        if self._config.max_tokens:
            body["max_tokens"] = self._config.max_tokens

        if tools:
            body["tools"] = [tool.to_openai_format() for tool in tools]
            body["tool_choice"] = "auto"

        return body

    async def chat(
        self,
        messages: list[LlmMessage],
        tools: Optional[list[LlmToolDefinition]] = None,
    ) -> LlmResponse:
        """Send a chat completion request.

        Args:
            messages: Conversation messages
            tools: Optional list of available tools

        Returns:
            Complete response from the model

        Raises:
            LlmProviderError: If the call fails or the response is malformed
        """
        client = await self._get_client()
        model = self._config.model
        start_time = time.time()

        with tracer.start_as_current_span("openai_compatible.chat") as span:
            span.set_attribute("llm.model", model)
            span.set_attribute("llm.message_count", len(messages))

            try:
                body = self._build_request_body(messages, tools)
                logger.debug(f"Chat request: model={model}, messages={len(messages)}, tools={len(tools) if tools else 0}")

                response = await client.post("/chat/completions", json=body, headers=self._get_headers())
                response.raise_for_status()
                data = response.json()

            except httpx.ConnectError as e:
                span.set_attribute("error", True)
                logger.error(f"Cannot connect to model server at {self._base_url}: {e}")
                raise LlmProviderError(
                    message="Cannot connect to model server",
                    error_code="llm_unavailable",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                    details={"url": self._base_url},
                )
            except httpx.TimeoutException as e:
                span.set_attribute("error", True)
                logger.error(f"Model request timed out: {e}")
                raise LlmProviderError(
                    message="Model request timed out",
                    error_code="llm_timeout",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )
            except httpx.HTTPStatusError as e:
                span.set_attribute("error", True)
                logger.error(f"Model server HTTP error: {e.response.status_code} - {e.response.text[:200]}")
                raise self._handle_http_error(e.response.status_code, e.response.text)
            except httpx.RequestError as e:
                span.set_attribute("error", True)
                logger.error(f"Model request error: {e}")
                raise LlmProviderError(
                    message=f"Failed to communicate with model server: {e}",
                    error_code="llm_request_error",
                    provider=self.PROVIDER_NAME,
                    is_retryable=True,
                )
            except ValueError as e:
                span.set_attribute("error", True)
                raise self._invalid_response(f"Response is not valid JSON: {e}")

            duration_ms = (time.time() - start_time) * 1000
            llm_request_count.add(1, {"model": model, "has_tools": str(bool(tools)), "provider": self.PROVIDER_NAME})
            llm_request_time.record(duration_ms, {"model": model, "provider": self.PROVIDER_NAME})
            span.set_attribute("llm.duration_ms", duration_ms)

            choices = data.get("choices") if isinstance(data, dict) else None
            if not choices or not isinstance(choices[0], dict):
                raise self._invalid_response("No choices in model response")
            choice = choices[0]
            message = choice.get("message")
            if not isinstance(message, dict):
                raise self._invalid_response("No response from model")

            content = message.get("content") or ""
            tool_calls = None
            if message.get("tool_calls"):
                tool_calls = self._parse_tool_calls(message["tool_calls"])
                for tc in tool_calls:
                    llm_tool_calls.add(1, {"model": model, "tool_name": tc.name, "provider": self.PROVIDER_NAME})
                logger.info(f"Model requested {len(tool_calls)} tool call(s): {[tc.name for tc in tool_calls]}")
            span.set_attribute("llm.tool_call_count", len(tool_calls) if tool_calls else 0)

            return LlmResponse(
                content=content,
                tool_calls=tool_calls,
                finish_reason=choice.get("finish_reason") or "stop",
                usage=data.get("usage"),
            )

    def _invalid_response(self, message: str) -> LlmProviderError:
        logger.error(f"Invalid model response: {message}")
        return LlmProviderError(
            message=message,
            error_code="llm_invalid_response",
            provider=self.PROVIDER_NAME,
            is_retryable=False,
        )

    def _handle_http_error(self, status_code: int, error_text: str) -> LlmProviderError:
        """Handle HTTP errors by status code.

        Args:
            status_code: HTTP status code
            error_text: Error response text

        Returns:
            Appropriate LlmProviderError
        """
        try:
            error_json = json.loads(error_text)
            error = error_json.get("error") if isinstance(error_json, dict) else None
            error_detail = error.get("message", error_text[:200]) if isinstance(error, dict) else str(error or error_text[:200])
        except json.JSONDecodeError:
            error_detail = error_text[:200]

        if status_code >= 500:
            return LlmProviderError(
                message=f"Model server error: {status_code}",
                error_code="llm_server_error",
                provider=self.PROVIDER_NAME,
                is_retryable=True,
                details={"status_code": status_code, "detail": error_detail},
            )
        return LlmProviderError(
            message=f"Model API error: {status_code} {error_detail}".strip(),
            error_code="llm_api_error",
            provider=self.PROVIDER_NAME,
            is_retryable=False,
            details={"status_code": status_code},
        )

    async def probe(self) -> GatewayConfig:
        """Check the endpoint via ``GET /models`` and refresh readiness.

        On success the first served model's id becomes the display name.
        On any failure ``ready`` is cleared and the previous name kept.
        """
        try:
            client = await self._get_client()
            response = await client.get("/models", headers=self._get_headers(), timeout=self._probe_timeout)
            response.raise_for_status()
            data = response.json()

            models = data.get("data") if isinstance(data, dict) else None
            model_id = ""
            if isinstance(models, list) and models and isinstance(models[0], dict):
                model_id = str(models[0].get("id") or "")

            self._gateway_config.model_name = display_name_from_model_id(model_id, self._default_display_name)
            self._gateway_config.ready = True
            logger.info(f"Model server ready at {self._base_url}, model: {self._gateway_config.model_name}")
        except Exception as e:
            self._gateway_config.ready = False
            logger.warning(f"Model server not available at {self._base_url}: {e}")

        return self._gateway_config

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def configure(builder: "ApplicationBuilderBase") -> "OpenAiCompatibleLlmProvider":
        """Configure the provider and the shared GatewayConfig in the service collection.

        Args:
            builder: The application builder

        Returns:
            The configured provider
        """
        from application.settings import app_settings

        gateway_config = GatewayConfig(ready=False, model_name=app_settings.llm_default_display_name)
        config = LlmConfig(
            model=app_settings.llm_model,
            temperature=app_settings.llm_temperature,
            max_tokens=app_settings.llm_max_tokens,
            timeout=app_settings.llm_timeout,
            base_url=app_settings.llm_base_url,
            api_key=app_settings.llm_api_key,
            extra={
                "default_display_name": app_settings.llm_default_display_name,
                "probe_timeout": app_settings.llm_probe_timeout,
            },
        )
        provider = OpenAiCompatibleLlmProvider(config, gateway_config)

        builder.services.add_singleton(GatewayConfig, singleton=gateway_config)
        builder.services.add_singleton(OpenAiCompatibleLlmProvider, singleton=provider)
        builder.services.add_singleton(LlmProvider, singleton=provider)

        logger.info(f"OpenAiCompatibleLlmProvider configured: model='{config.model}', endpoint='{config.base_url}'")
        return provider
