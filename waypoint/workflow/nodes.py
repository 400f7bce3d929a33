# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Helpers for writing workflow nodes.

A node never raises for an expected failure. It returns ``step_failed(...)``,
which records the failure in ``error``/``errors``; the conditional edge
leaving the node decides where execution goes next. ``guarded_node`` applies
that pattern to anything the node body raises.
"""

import functools
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from waypoint.core.errors import NodeError, sanitize_error_for_user
from waypoint.workflow.graph import NodeFn
from waypoint.workflow.state import AWAITING_ACTION, errors_of, steps_of

logger = logging.getLogger(__name__)

OK = "ok"
ERROR = "error"


# =============================================================================
# Tool result unwrapping
# =============================================================================

def extract_text(result: Any) -> str:
    """
    Text carried by a tool result.

    Accepts a bare string or the ``{"content": [{"type": "text", "text": ...}]}``
    envelope returned by MCP servers; text items are joined with newlines.
    """
    if isinstance(result, str):
        return result

    if isinstance(result, Mapping):
        texts = [
            item["text"]
            for item in result.get("content") or []
            if isinstance(item, Mapping) and item.get("type") == "text" and isinstance(item.get("text"), str)
        ]
        if texts:
            return "\n".join(texts)

    raise ValueError("Tool result carries no text content")


def extract_json(result: Any) -> Any:
    """Structured payload of a tool result, parsed from its text if needed"""
    if isinstance(result, Mapping) and result.get("structuredContent") is not None:
        return result["structuredContent"]

    text = extract_text(result)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Tool result is not valid JSON: {e}") from e


# =============================================================================
# State updates
# =============================================================================

def step_completed(state: Mapping[str, Any], step: str, **fields: Any) -> Dict[str, Any]:
    """Update marking ``step`` done; a step is recorded once even across resumes"""
    completed = steps_of(state)
    if step not in completed:
        completed.append(step)
    return {"current_step": step, "completed_steps": completed, **fields}


def step_failed(state: Mapping[str, Any], step: str, message: str) -> Dict[str, Any]:
    """Update recording a node-level failure"""
    return {
        "current_step": ERROR,
        "error": message,
        "errors": errors_of(state) + [{"step": step, "error": message}],
    }


def request_action(
    state: Mapping[str, Any],
    step: str,
    action_type: str,
    description: str,
    instructions: str,
    required_output_names: List[str],
    available_tool_names: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Update that pauses the workflow until the caller supplies
    ``required_output_names`` through resume.
    """
    action: Dict[str, Any] = {
        "type": action_type,
        "description": description,
        "instructions": instructions,
        "required_output_names": list(required_output_names),
    }
    if available_tool_names is not None:
        action["available_tool_names"] = list(available_tool_names)
    if context is not None:
        action["context"] = dict(context)

    return {"current_step": step, "status": AWAITING_ACTION, "action": action}


def already_satisfied(state: Mapping[str, Any], *fields: str) -> bool:
    """True when resuming and every field the node would produce is present"""
    if not state.get("resuming"):
        return False
    return all(state.get(name) is not None for name in fields)


def missing_fields(state: Mapping[str, Any], *fields: str) -> List[str]:
    return [name for name in fields if state.get(name) in (None, "")]


def require_fields(state: Mapping[str, Any], step: str, *fields: str) -> None:
    """Raise NodeError naming the first missing precondition"""
    missing = missing_fields(state, *fields)
    if missing:
        raise NodeError(step, f"Missing required input: {missing[0]}")


# =============================================================================
# Node wrapper and router
# =============================================================================

def guarded_node(step: str):
    """
    Decorator turning anything a node raises into ``step_failed``.

    Usage:
        @guarded_node("generate")
        async def generate(state):
            require_fields(state, "generate", "summary")
            ...
    """
    def decorator(fn: NodeFn) -> NodeFn:
        @functools.wraps(fn)
        async def wrapper(state: Dict[str, Any]) -> Optional[Mapping[str, Any]]:
            try:
                return await fn(state)
            except NodeError as e:
                logger.error(f"Node {step} failed: {e.message}")
                return step_failed(state, step, e.message)
            except Exception as e:
                logger.error(f"Node {step} failed: {e}", exc_info=True)
                return step_failed(state, step, sanitize_error_for_user(e, include_type=False))
        return wrapper
    return decorator


def route_on_error(state: Mapping[str, Any]) -> str:
    """Router for fallible nodes: ``"error"`` when the node failed, else ``"ok"``"""
    return ERROR if state.get("current_step") == ERROR else OK
