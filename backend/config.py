"""
Runtime Configuration for StatBridge.

Provides a singleton RuntimeConfig class holding endpoints, credentials and
model parameters. Values default from environment variables and can be
adjusted at runtime via update(), without restarting the service.

Usage:
    from config import runtime_config
    model = runtime_config.model_chat
    runtime_config.update(temperature=0.3, max_tool_rounds=2)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Any
from threading import Lock

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

# Fields never echoed back in to_dict()
SECRET_FIELDS = {"mcp_api_key", "anthropic_api_key"}


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Statistics search service (MCP over HTTP)
    mcp_endpoint: str = field(
        default_factory=lambda: _first_env("STATISTA_MCP_ENDPOINT", default="https://api.statista.ai/v1/mcp")
    )
    mcp_api_key: str = field(default_factory=lambda: os.environ.get("STATISTA_MCP_API_KEY", ""))
    mcp_protocol_version: str = field(
        default_factory=lambda: _first_env("MCP_PROTOCOL_VERSION", default="2024-11-05")
    )
    client_name: str = "statbridge"
    client_version: str = __version__

    # Model API
    anthropic_api_key: str = field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", ""))
    anthropic_url: str = field(
        default_factory=lambda: _first_env("ANTHROPIC_API_URL", default="https://api.anthropic.com/v1/messages")
    )
    anthropic_version: str = field(default_factory=lambda: _first_env("ANTHROPIC_VERSION", default="2023-06-01"))

    # Model names
    model_chat: str = field(default_factory=lambda: _first_env("LLM_CHAT_MODEL", default="claude-sonnet-4-20250514"))
    model_themes: str = field(
        default_factory=lambda: _first_env("LLM_THEME_MODEL", default="claude-3-5-haiku-20241022")
    )

    # Model parameters
    max_tokens: int = field(default_factory=lambda: int(os.environ.get("LLM_MAX_TOKENS", "1024")))
    temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.7")))
    theme_temperature: float = 0.3
    theme_max_tokens: int = 100

    # Search / tool loop
    search_limit: int = field(default_factory=lambda: int(os.environ.get("SEARCH_LIMIT", "12")))
    max_tool_rounds: int = field(default_factory=lambda: int(os.environ.get("MAX_TOOL_ROUNDS", "3")))

    # HTTP timeouts (seconds). The model stream has no read timeout.
    connect_timeout: float = field(default_factory=lambda: float(os.environ.get("HTTP_CONNECT_TIMEOUT", "10.0")))
    rpc_timeout: float = field(default_factory=lambda: float(os.environ.get("RPC_TIMEOUT", "30.0")))

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "temperature": (0.0, 1.0),
        "theme_temperature": (0.0, 1.0),
        "max_tokens": (64, 32768),
        "theme_max_tokens": (16, 4096),
        "search_limit": (1, 50),
        "max_tool_rounds": (0, 20),
        "connect_timeout": (0.5, 120.0),
        "rpc_timeout": (1.0, 600.0),
    })

    @property
    def mcp_configured(self) -> bool:
        """Both endpoint and credential are known."""
        return bool(self.mcp_endpoint and self.mcp_api_key)

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., max_tool_rounds=2)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown or rejected keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_"):
                    ignored.append(key)
                    continue

                if not hasattr(self, key):
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")
                    continue

                if key in ("mcp_endpoint", "anthropic_url") and isinstance(value, str):
                    cleaned = value.strip()
                    if cleaned and not cleaned.startswith(("http://", "https://")):
                        ignored.append(key)
                        logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                        continue
                    value = cleaned

                # Validate model names (alphanumeric, colons, dots, dashes only)
                if key.startswith("model_") and isinstance(value, str) and value:
                    import re as _re
                    if not _re.match(r'^[a-zA-Z0-9._:-]+$', value) or len(value) > 100:
                        ignored.append(key)
                        logger.warning(f"Config rejected invalid model name: {key}={value!r}")
                        continue

                if key in self._VALIDATION_RANGES:
                    lo, hi = self._VALIDATION_RANGES[key]
                    if not isinstance(value, (int, float)) or not (lo <= value <= hi):
                        ignored.append(key)
                        logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                        continue

                setattr(self, key, value)
                updated.append(key)
                shown = "***" if key in SECRET_FIELDS else value
                logger.info(f"Config updated: {key} = {shown}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields, masks secrets)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_"):
                continue
            value = getattr(self, field_info.name)
            if field_info.name in SECRET_FIELDS:
                value = bool(value)
            result[field_info.name] = value
        return result


# Singleton instance
runtime_config = RuntimeConfig()
