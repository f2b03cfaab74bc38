"""Configuration management for the project document generator."""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Package paths
PACKAGE_ROOT = Path(__file__).resolve().parent
RESOURCES_DIR = PACKAGE_ROOT / "resources"


def _resolve_path(env_name: str, default: Path) -> Path:
    value = os.getenv(env_name)
    if value:
        return Path(value).expanduser().resolve()
    return default.resolve()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return []
    values = []
    for item in raw.split(","):
        cleaned = item.strip()
        if cleaned:
            values.append(cleaned)
    # Preserve order while removing duplicates
    seen = set()
    unique: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


def _env_choice(name: str, default: str, allowed: Tuple[str, ...]) -> str:
    value = os.getenv(name, default)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized not in allowed:
        return default
    return normalized


# Provider selection
SUPPORTED_PROVIDERS = ("anthropic", "openai", "ollama")
AI_PROVIDER = _env_choice("AI_PROVIDER", "anthropic", SUPPORTED_PROVIDERS)
# Tried in order when the primary provider keeps failing transiently
AI_FALLBACK_PROVIDERS = [
    name.lower()
    for name in _env_list("AI_FALLBACK_PROVIDERS")
    if name.lower() in SUPPORTED_PROVIDERS and name.lower() != AI_PROVIDER
]

# API Configuration
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None

OLLAMA_ENDPOINT = os.getenv("OLLAMA_ENDPOINT", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1")

# Token budgets
MAX_TOKENS = _env_int("MAX_TOKENS", 8000)  # absolute ceiling for a single response
DEFAULT_RESPONSE_TOKENS = _env_int("DEFAULT_RESPONSE_TOKENS", 4000)
LONG_DOCUMENT_TOKENS = _env_int("LONG_DOCUMENT_TOKENS", 8000)
CONTEXT_TOKEN_LIMIT = _env_int("CONTEXT_TOKEN_LIMIT", 100000)
TEMPERATURE = _env_float("TEMPERATURE", 0.3)  # Lower temperature for more consistent output
CHARS_PER_TOKEN_EST = 4  # heuristic

# Retry policy shared by every document type
AI_MAX_RETRIES = _env_int("AI_MAX_RETRIES", 3)
AI_BACKOFF_BASE = _env_float("AI_BACKOFF_BASE", 2.0)
AI_BACKOFF_MAX = _env_float("AI_BACKOFF_MAX", 30.0)
AI_TIMEOUT = _env_float("AI_TIMEOUT", 120.0)
VALIDATION_ATTEMPTS = _env_int("VALIDATION_ATTEMPTS", 2)

# Tier-based rate limit guidance (conservative)
# Tier 2 typical: Sonnet 4.x ~30k ITPM, 8k OTPM, 50 RPM
RATE_LIMIT_RPM = _env_int("RATE_LIMIT_RPM", 50)

# Few-shot example defaults
FEW_SHOT_ENABLED = _env_flag("FEW_SHOT_ENABLED", "true")
FEW_SHOT_MAX_EXAMPLES = _env_int("FEW_SHOT_MAX_EXAMPLES", 2)
FEW_SHOT_TOKEN_BUDGET = _env_float("FEW_SHOT_TOKEN_BUDGET", 0.4)
FEW_SHOT_MIN_TOKEN_LIMIT = _env_int("FEW_SHOT_MIN_TOKEN_LIMIT", 2000)
FEW_SHOT_RANDOM_SELECTION = _env_flag("FEW_SHOT_RANDOM_SELECTION")
FEW_SHOT_PRIORITY_TYPES = _env_list("FEW_SHOT_PRIORITY_TYPES") or ["project-charter"]
FEW_SHOT_EXCLUDED_TYPES = _env_list("FEW_SHOT_EXCLUDED_TYPES")
FEW_SHOT_DEFAULT_EXAMPLE_TOKENS = 800
FEW_SHOT_CATALOG_PATH = _resolve_path(
    "FEW_SHOT_CATALOG_PATH", RESOURCES_DIR / "few_shot_examples.json"
)
