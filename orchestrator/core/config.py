"""Application configuration.

Settings are read from environment variables once at import time. A ``.env``
file (and an environment specific ``.env.<environment>`` file, when present)
is loaded first so local development does not need exported variables.
"""

import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Resolve the current environment from ``APP_ENV``.

    Unknown values fall back to development.
    """
    match os.getenv("APP_ENV", "development").lower():
        case "production" | "prod":
            return Environment.PRODUCTION
        case "staging" | "stage":
            return Environment.STAGING
        case "test":
            return Environment.TEST
        case _:
            return Environment.DEVELOPMENT


def load_env_file() -> Optional[str]:
    """Load the most specific ``.env`` file available.

    Returns:
        The path of the loaded file, or None if no file was found.
    """
    env = get_environment()
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

    for filename in (f".env.{env.value}.local", f".env.{env.value}", ".env.local", ".env"):
        path = os.path.join(base_dir, filename)
        if os.path.isfile(path):
            load_dotenv(dotenv_path=path)
            return path
    return None


ENV_FILE = load_env_file()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if not value:
        return None
    return float(value)


class Settings:
    """Application settings loaded from the environment."""

    def __init__(self):
        """Read every setting from the environment."""
        self.ENVIRONMENT = get_environment()
        self.PROJECT_NAME = os.getenv("PROJECT_NAME", "Agent Workflow Orchestrator")

        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if self.ENVIRONMENT == Environment.DEVELOPMENT else "INFO")
        self.LOG_FORMAT = os.getenv(
            "LOG_FORMAT",
            "json" if self.ENVIRONMENT in (Environment.PRODUCTION, Environment.STAGING) else "console",
        )

        # LLM provider
        self.OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
        self.OPENAI_API_BASE = os.getenv("OPENAI_API_BASE") or None
        self.DEFAULT_LLM_MODEL = os.getenv("DEFAULT_LLM_MODEL", "gpt-4o-mini")
        self.AGENT_DEFAULT_MODEL = os.getenv("AGENT_DEFAULT_MODEL", "gpt-4o")
        self.LANGFUSE_TRACING_ENABLED = _get_bool("LANGFUSE_TRACING_ENABLED")

        # Agents
        self.AGENT_CONFIG_PATH = os.getenv("AGENT_CONFIG_PATH") or None

        # Planning
        self.PLAN_MAX_STEPS = int(os.getenv("PLAN_MAX_STEPS", "5"))
        self.PLAN_GENERATION_RETRIES = int(os.getenv("PLAN_GENERATION_RETRIES", "2"))
        self.REPLAN_RETRIES = int(os.getenv("REPLAN_RETRIES", "1"))

        # Execution
        self.STEP_EXECUTION_RETRIES = int(os.getenv("STEP_EXECUTION_RETRIES", "1"))
        self.WORKFLOW_MAX_REPLANS = int(os.getenv("WORKFLOW_MAX_REPLANS", "3"))
        self.WORKFLOW_PARALLEL_STEPS = _get_bool("WORKFLOW_PARALLEL_STEPS")
        self.WORKFLOW_MAX_CONCURRENCY = int(os.getenv("WORKFLOW_MAX_CONCURRENCY", "4"))
        self.WORKFLOW_TIMEOUT_SECONDS = _get_optional_float("WORKFLOW_TIMEOUT_SECONDS")

        # Slow operation thresholds (milliseconds)
        self.SLOW_OPERATION_MS = int(os.getenv("SLOW_OPERATION_MS", "2000"))
        self.IMPORTANT_OPERATION_MS = int(os.getenv("IMPORTANT_OPERATION_MS", "5000"))


settings = Settings()
