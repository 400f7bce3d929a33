# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
JSON-RPC 2.0 messages spoken by the HTTP transport
"""

from typing import Any, Dict, Optional

JSONRPC_VERSION = "2.0"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_LIST_TOOLS = "tools/list"
METHOD_CALL_TOOL = "tools/call"


def build_request(request_id: int, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def build_notification(method: str) -> Dict[str, Any]:
    """Notifications carry no id and get no response"""
    return {"jsonrpc": JSONRPC_VERSION, "method": method}


def build_initialize_request(request_id: int, protocol_version: str, client_info: Dict[str, Any]) -> Dict[str, Any]:
    # The engine only calls tools, so it advertises no client capabilities
    return build_request(request_id, METHOD_INITIALIZE, {
        "protocolVersion": protocol_version,
        "capabilities": {},
        "clientInfo": client_info,
    })


def build_initialized_notification() -> Dict[str, Any]:
    return build_notification(METHOD_INITIALIZED)


def build_list_tools_request(request_id: int) -> Dict[str, Any]:
    return build_request(request_id, METHOD_LIST_TOOLS)


def build_call_tool_request(request_id: int, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    return build_request(request_id, METHOD_CALL_TOOL, {"name": tool_name, "arguments": arguments})


def is_response(message: Dict[str, Any]) -> bool:
    """A response carries a result or an error; anything with only a method is a notification"""
    return "result" in message or "error" in message


def extract_error_message(response: Dict[str, Any]) -> str:
    """Human-readable message from a JSON-RPC error response"""
    error = response.get("error") or {}
    if isinstance(error, dict):
        return error.get("message", "Unknown error")
    return str(error)
