"""Configuration settings for the search agent."""

import logging
import os
from dotenv import load_dotenv

load_dotenv()

# Logging setup
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)

# "production" hides internal error detail from callers
APP_ENV = os.getenv("APP_ENV", "development")
EXPOSE_ERROR_DETAIL = APP_ENV != "production"

# Groq (OpenAI-compatible endpoint)
# Models with reliable tool calling:
# - meta-llama/llama-4-scout-17b-16e-instruct (default)
# - llama-3.3-70b-versatile
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
GROQ_DEFAULT_MODEL = os.getenv(
    "GROQ_DEFAULT_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct"
)

# OpenRouter
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = os.getenv("OPENROUTER_DEFAULT_MODEL", "openai/gpt-4o-mini")

# Tavily (web search + page extraction)
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY")
TAVILY_BASE_URL = os.getenv("TAVILY_BASE_URL", "https://api.tavily.com")

# Timeouts (seconds), one per external call
MODEL_TIMEOUT_SECONDS = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15"))
EXTRACT_TIMEOUT_SECONDS = float(os.getenv("EXTRACT_TIMEOUT_SECONDS", "30"))

# Retry settings (search/extract HTTP only; model errors go to the recovery policy)
MAX_RETRIES = 3
RETRY_BACKOFF_FACTOR = 2.0

# Keep-alive for streamed runs
HEARTBEAT_INTERVAL_SECONDS = float(os.getenv("HEARTBEAT_INTERVAL_SECONDS", "15"))
