"""Default configuration values for the Resonance agent core."""

from typing import Any


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    return {
        # Chat behaviour
        "chat_mode": "agent",
        # "xml": tool definitions in the system prompt, calls parsed from text
        # "native": tools bound to the chat model, calls from tool_call_chunks
        "tool_format": "xml",
        "max_agent_iterations": 50,
        # Approval policy per approval type; tools without a type never ask
        "tool_approval": {
            "auto_approve": {
                "edits": False,
                "terminal": False,
                "mcp_tools": False,
            },
        },
        # Backoff for transient provider errors
        "retry": {
            "max_retries": 3,
            "initial_delay_ms": 1000,
            "max_delay_ms": 10000,
            "backoff_multiplier": 2,
            "retryable_status_codes": [429, 503, 504],
        },
        "terminal": {
            "timeout_seconds": 30,
        },
        # OpenAI-compatible chat model
        "llm": {
            "model": "gpt-4o-mini",
            "api_key": None,
            "base_url": None,
            "temperature": 0.7,
            "max_tokens": 4000,
            # Extra keyword arguments passed to the chat model
            "options": {},
        },
        # Host surface
        "server_host": "localhost",
        "server_port": 8765,
        # Logging Configuration
        "log_level": "INFO",
        "log_format": "pretty",
        "log_colors": True,
    }
