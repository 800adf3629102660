"""Application settings configuration for Research Agent."""

import logging
import sys
from typing import Optional

from neuroglia.hosting.abstractions import ApplicationSettings


class Settings(ApplicationSettings):
    """Research Agent settings for the model gateway, web tools and agent loop."""

    # Debugging Configuration
    debug: bool = True
    environment: str = "development"  # development, production
    log_level: str = "INFO"

    # Application Configuration
    app_name: str = "Research Agent"
    app_version: str = "1.0.0"
    app_host: str = "127.0.0.1"  # Uvicorn bind address
    app_port: int = 3001  # Uvicorn port

    # Observability Configuration
    service_name: str = "research-agent"
    service_version: str = app_version

    # CORS Configuration (front-end dev server)
    enable_cors: bool = True
    cors_origins: list[str] = ["http://localhost:5173"]

    # ==========================================================================
    # Model Gateway Configuration (OpenAI-compatible chat completions)
    # ==========================================================================
    # LM Studio, llama.cpp server, vLLM and similar servers expose /v1/models
    # and /v1/chat/completions.
    llm_base_url: str = "http://localhost:1234/v1"
    llm_model: str = "local-model"  # Sent as "model" in chat requests
    llm_default_display_name: str = "gpt-oss"  # Used until the probe discovers one
    llm_api_key: Optional[str] = None
    llm_temperature: float = 0.3
    llm_max_tokens: int = 1000
    llm_timeout: float = 120.0  # Local models can take a while to answer
    llm_probe_timeout: float = 5.0

    # ==========================================================================
    # Web Search Configuration (SearXNG JSON API)
    # ==========================================================================
    search_url: str = "http://localhost:8080/search"
    search_language: str = "en"
    search_timeout: float = 15.0
    search_max_results: int = 10

    # ==========================================================================
    # Page Fetch Configuration
    # ==========================================================================
    fetch_timeout: float = 10.0
    fetch_max_chars: int = 8000
    fetch_preview_chars: int = 500
    fetch_user_agent: str = "Mozilla/5.0 (compatible; ResearchAgent/1.0)"

    # ==========================================================================
    # Agent Configuration
    # ==========================================================================
    agent_name: str = "research-assistant"
    agent_max_iterations: int = 8  # Max model round-trips per user message
    agent_exhausted_message: str = "I've searched multiple times but couldn't find a complete answer."

    # System Prompt - behavioral rules for the research loop
    agent_system_prompt: str = """You are a helpful assistant with web browsing capability. You have two tools:

1. web_search(query) - Search the web to find URLs and information
2. fetch_url(url) - Fetch content from a specific URL to get details

STRATEGY FOR FINDING INFORMATION:
- First use web_search to find relevant URLs and info
- CAREFULLY READ search results - the answer is often already there!
- Only use fetch_url if search results don't have the specific detail you need
- STOP SEARCHING when you have found the answer - don't over-search

CRITICAL RULES:
1. ONLY state facts that are EXPLICITLY present in the results you retrieved
2. If you can't find the specific information, say so honestly
3. NEVER make up scores, dates, names, or facts
4. If something hasn't happened yet, say so
5. Be persistent - try different search queries or fetch URLs if first attempt fails

Be concise and accurate. Accuracy is more important than having an answer."""

    class Config:
        env_file = ".env"
        env_prefix = "RESEARCH_AGENT_"  # All env vars prefixed with RESEARCH_AGENT_
        case_sensitive = False
        extra = "ignore"


app_settings = Settings()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("fastapi").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
