# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Connection Data Structures
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional

from waypoint.mcp.registry import ServerDescriptor


@dataclass
class ToolInfo:
    """One entry of a server's tool catalog"""
    name: str
    input_schema: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "inputSchema": self.input_schema}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class ToolConnection:
    """
    A live connection owned by the ConnectionManager.

    ``tools`` mirrors the last successful list_tools call and is advisory only.
    """
    descriptor: ServerDescriptor
    transport: Any
    connected: bool = True
    connected_at: datetime = field(default_factory=datetime.now)
    tools: Optional[List[ToolInfo]] = None


@dataclass
class HTTPSession:
    """Represents an initialized streamable-HTTP session"""
    endpoint: str
    protocol_version: str
    session_id: Optional[str]
    server_capabilities: Dict[str, Any]
    initialized_at: datetime
