"""Environment-variable-based configuration."""

import os
import shlex
from pathlib import Path

_DATA_DIR = "~/.local/share/autodidact"


def get_db_path() -> Path:
    """Return the knowledge database path from AD_DB_PATH."""
    raw = os.environ.get("AD_DB_PATH", f"{_DATA_DIR}/knowledge.db")
    return Path(raw).expanduser()


def get_host() -> str:
    """Return the listening host from AD_HOST."""
    return os.environ.get("AD_HOST", "0.0.0.0")


def get_port() -> int:
    """Return the listening port from AD_PORT."""
    return int(os.environ.get("AD_PORT", "5000"))


def get_log_level() -> str:
    """Return the logging level from AD_LOG_LEVEL."""
    return os.environ.get("AD_LOG_LEVEL", "WARNING")


def get_program_path() -> Path:
    """Return the deployable program file from AD_PROGRAM_PATH."""
    raw = os.environ.get("AD_PROGRAM_PATH", f"{_DATA_DIR}/agent_program.py")
    return Path(raw).expanduser()


def get_backup_dir() -> Path:
    """Return the directory for pre-deployment snapshots from AD_BACKUP_DIR."""
    raw = os.environ.get("AD_BACKUP_DIR", f"{_DATA_DIR}/backups")
    return Path(raw).expanduser()


def get_restart_command() -> list[str]:
    """Return the process-supervisor restart command from AD_RESTART_COMMAND."""
    return shlex.split(os.environ.get("AD_RESTART_COMMAND", "pm2 restart all"))


def get_git_repo() -> Path | None:
    """Return the source-control checkout from AD_GIT_REPO, or None to skip publishing."""
    raw = os.environ.get("AD_GIT_REPO")
    return Path(raw).expanduser() if raw else None


def get_git_remote() -> str:
    """Return the remote to push deployments to from AD_GIT_REMOTE."""
    return os.environ.get("AD_GIT_REMOTE", "origin")


def get_git_branch() -> str:
    """Return the branch to push deployments to from AD_GIT_BRANCH."""
    return os.environ.get("AD_GIT_BRANCH", "main")


def get_codegen_provider() -> str:
    """Return the code generation backend from AD_CODEGEN_PROVIDER."""
    return os.environ.get("AD_CODEGEN_PROVIDER", "anthropic").lower()


def get_ollama_url() -> str:
    """Return the Ollama API URL from AD_OLLAMA_URL."""
    return os.environ.get("AD_OLLAMA_URL", "http://localhost:11434")


def get_ollama_model() -> str:
    """Return the Ollama model name from AD_OLLAMA_MODEL."""
    return os.environ.get("AD_OLLAMA_MODEL", "qwen2.5-coder:7b")


def get_llm_timeout() -> float:
    """Return the Ollama generation timeout in seconds from AD_LLM_TIMEOUT."""
    return float(os.environ.get("AD_LLM_TIMEOUT", "120.0"))


def get_ollama_probe_timeout() -> float:
    """Return the Ollama reachability check timeout in seconds from AD_OLLAMA_PROBE_TIMEOUT."""
    return float(os.environ.get("AD_OLLAMA_PROBE_TIMEOUT", "10.0"))


def get_ollama_num_ctx() -> int:
    """Return the Ollama context window from AD_OLLAMA_NUM_CTX.

    Prompts carry the whole running program, which overflows Ollama's small default.
    """
    return int(os.environ.get("AD_OLLAMA_NUM_CTX", "32768"))


def get_codegen_max_tokens() -> int:
    """Return the output token ceiling for generated programs from AD_CODEGEN_MAX_TOKENS."""
    return int(os.environ.get("AD_CODEGEN_MAX_TOKENS", "16000"))


def get_codegen_temperature() -> float:
    """Return the sampling temperature for code generation from AD_CODEGEN_TEMPERATURE."""
    return float(os.environ.get("AD_CODEGEN_TEMPERATURE", "0.2"))


def get_anthropic_model() -> str:
    """Return the Anthropic model name from AD_ANTHROPIC_MODEL."""
    return os.environ.get("AD_ANTHROPIC_MODEL", "claude-sonnet-4-5")


def get_anthropic_timeout() -> float:
    """Return the Anthropic request timeout in seconds from AD_ANTHROPIC_TIMEOUT."""
    return float(os.environ.get("AD_ANTHROPIC_TIMEOUT", "120.0"))


def get_fetch_timeout() -> float:
    """Return the per-page load timeout in seconds from AD_FETCH_TIMEOUT."""
    return float(os.environ.get("AD_FETCH_TIMEOUT", "30.0"))


def get_sandbox_timeout() -> float:
    """Return the isolated test-run timeout in seconds from AD_SANDBOX_TIMEOUT."""
    return float(os.environ.get("AD_SANDBOX_TIMEOUT", "60.0"))


def get_eval_timeout() -> float:
    """Return the restricted evaluation timeout in seconds from AD_EVAL_TIMEOUT."""
    return float(os.environ.get("AD_EVAL_TIMEOUT", "5.0"))


def get_improve_interval() -> float:
    """Return the knowledge refresh period in seconds from AD_IMPROVE_INTERVAL."""
    return float(os.environ.get("AD_IMPROVE_INTERVAL", str(6 * 60 * 60)))


def get_discover_interval() -> float:
    """Return the topic discovery period in seconds from AD_DISCOVER_INTERVAL."""
    return float(os.environ.get("AD_DISCOVER_INTERVAL", str(12 * 60 * 60)))


def get_self_improve_interval() -> float:
    """Return the self-improvement period in seconds from AD_SELF_IMPROVE_INTERVAL."""
    return float(os.environ.get("AD_SELF_IMPROVE_INTERVAL", str(24 * 60 * 60)))


def get_startup_delay() -> float:
    """Return the delay before the first refresh in seconds from AD_STARTUP_DELAY."""
    return float(os.environ.get("AD_STARTUP_DELAY", "5.0"))


def is_sandbox_test() -> bool:
    """Return True when the program runs as a deployment candidate self-check."""
    return os.environ.get("AD_SANDBOX_TEST", "") == "1"
