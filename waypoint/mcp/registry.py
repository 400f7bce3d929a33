# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
External Tool Registry

Parses named server descriptors from environment variables.
Pure data, no network activity.

Format (SERVER upper-cased, suffix defaults to "_MCP"):
    {SERVER}_MCP_TRANSPORT   stdio | http
    {SERVER}_MCP_COMMAND     launch command (stdio)
    {SERVER}_MCP_ARGS        JSON array of strings (stdio)
    {SERVER}_MCP_ENV         optional JSON object of extra env vars (stdio)
    {SERVER}_MCP_URL         endpoint (http)
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from waypoint.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

TRANSPORT_STDIO = "stdio"
TRANSPORT_HTTP = "http"
SUPPORTED_TRANSPORTS = (TRANSPORT_STDIO, TRANSPORT_HTTP)


@dataclass(frozen=True)
class ServerDescriptor:
    """How to reach one external tool server"""
    name: str
    transport: str
    command: Optional[str] = None
    args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None


def normalize_server_name(raw: str) -> str:
    """FILE_TOOLS -> file-tools"""
    return raw.lower().replace("_", "-")


class ServerRegistry:
    """Immutable set of server descriptors keyed by normalized name"""

    def __init__(self, descriptors: Optional[List[ServerDescriptor]] = None):
        self._descriptors: Dict[str, ServerDescriptor] = {}
        for descriptor in descriptors or []:
            self._descriptors[descriptor.name] = descriptor

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, suffix: str = "_MCP") -> "ServerRegistry":
        """Build a registry from environment variable triples"""
        environ = os.environ if environ is None else environ
        pattern = re.compile(rf"^(.+){re.escape(suffix)}_TRANSPORT$")

        descriptors = []
        for key in sorted(environ):
            match = pattern.match(key)
            if not match:
                continue
            prefix = f"{match.group(1)}{suffix}"
            try:
                descriptors.append(parse_descriptor(match.group(1), prefix, environ))
            except ConfigurationError as e:
                logger.warning(f"Skipping MCP server config {match.group(1)}: {e.message}")

        registry = cls(descriptors)
        logger.info(f"Loaded {len(registry)} MCP server configurations")
        return registry

    def get(self, name: str) -> Optional[ServerDescriptor]:
        return self._descriptors.get(name)

    def has(self, name: str) -> bool:
        return name in self._descriptors

    def names(self) -> List[str]:
        return list(self._descriptors.keys())

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: str) -> bool:
        return self.has(name)


def parse_descriptor(raw_name: str, prefix: str, environ: Mapping[str, str]) -> ServerDescriptor:
    """
    Parse one descriptor from ``{prefix}_*`` variables.

    Raises ConfigurationError when the variables do not describe a usable
    server; the registry logs and skips such entries.
    """
    name = normalize_server_name(raw_name)
    transport = environ.get(f"{prefix}_TRANSPORT", "").strip().lower()

    if transport not in SUPPORTED_TRANSPORTS:
        raise ConfigurationError(f"Unsupported transport '{transport}'", server_name=name)

    if transport == TRANSPORT_HTTP:
        url = environ.get(f"{prefix}_URL")
        if not url:
            raise ConfigurationError(f"{prefix}_URL is required for http transport", server_name=name)
        return ServerDescriptor(name=name, transport=transport, url=url)

    command = environ.get(f"{prefix}_COMMAND")
    if not command:
        raise ConfigurationError(f"{prefix}_COMMAND is required for stdio transport", server_name=name)

    raw_args = environ.get(f"{prefix}_ARGS")
    if raw_args is None:
        raise ConfigurationError(f"{prefix}_ARGS is required for stdio transport", server_name=name)

    args = _parse_json(raw_args, f"{prefix}_ARGS", name)
    if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
        raise ConfigurationError(f"{prefix}_ARGS must be a JSON array of strings", server_name=name)

    env = _parse_json(environ.get(f"{prefix}_ENV", "{}"), f"{prefix}_ENV", name)
    if not isinstance(env, dict):
        raise ConfigurationError(f"{prefix}_ENV must be a JSON object", server_name=name)

    logger.debug(f"Loaded MCP server config: {name}")
    return ServerDescriptor(
        name=name,
        transport=transport,
        command=command,
        args=tuple(args),
        env={str(k): str(v) for k, v in env.items()},
    )


def _parse_json(raw: str, key: str, name: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {key}: {e}", server_name=name)
