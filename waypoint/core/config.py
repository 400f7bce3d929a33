# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Waypoint Configuration - Single source of truth.
YAML for settings, env vars for overrides and server descriptors.

External tool servers are NOT configured here: they are declared as
environment variable triples and parsed by waypoint.mcp.registry.
"""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_CONFIG_PATH = "./configs/waypoint.yaml"


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable engine configuration.
    All values from YAML, a few overridable from the environment.
    """

    # -- Client identity (sent during the MCP handshake) --
    client_name: str = "waypoint-client"
    client_version: str = "1.0.0"
    protocol_version: str = "2025-06-18"

    # -- Server descriptors --
    env_suffix: str = "_MCP"

    # -- Engine --
    resume_ttl_seconds: int = 30 * 60
    max_steps: int = 25

    # -- HTTP transport timeouts (seconds) --
    timeout_init: float = 30.0
    timeout_list: float = 10.0
    timeout_call: float = 300.0

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML.
    Returns defaults (plus env overrides) if the file doesn't exist.
    """
    path = path or os.getenv("WAYPOINT_CONFIG_PATH", DEFAULT_CONFIG_PATH)

    y = {}
    if Path(path).exists():
        with open(path) as f:
            y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    defaults = Config()

    return Config(
        # Client
        client_name=get(y, "client", "name") or defaults.client_name,
        client_version=get(y, "client", "version") or defaults.client_version,
        protocol_version=get(y, "client", "protocol_version") or defaults.protocol_version,

        # Servers
        env_suffix=get(y, "servers", "env_suffix") or defaults.env_suffix,

        # Engine
        resume_ttl_seconds=int(
            os.getenv("WAYPOINT_RESUME_TTL")
            or get(y, "engine", "resume_ttl_seconds")
            or defaults.resume_ttl_seconds
        ),
        max_steps=get(y, "engine", "max_steps") or defaults.max_steps,

        # HTTP
        timeout_init=get(y, "http", "timeouts", "init") or defaults.timeout_init,
        timeout_list=get(y, "http", "timeouts", "list") or defaults.timeout_list,
        timeout_call=get(y, "http", "timeouts", "call") or defaults.timeout_call,

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or defaults.log_level,
        log_format=os.getenv("LOG_FORMAT") or get(y, "logging", "format") or defaults.log_format,
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
