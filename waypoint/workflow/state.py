# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow State Channels

A workflow declares its state as a StateSchema: a table of named channels,
each with a reducer deciding how a node's partial update combines with the
previous value.

Reducers are only called for fields present in the update; absent fields
keep their previous value.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from waypoint.core.errors import GraphExecutionError

logger = logging.getLogger(__name__)

# Marker a node puts in ``status`` to hand control back to the caller
AWAITING_ACTION = "awaiting_action"

Reducer = Callable[[Any, Any], Any]


def replace(current: Any, update: Any) -> Any:
    """Default reducer: the update wins"""
    return update


def adopt_list(current: Optional[List[Any]], update: Optional[List[Any]]) -> List[Any]:
    """
    Reducer for accumulating lists (completed_steps, errors).

    Nodes read the previous list and return the extended one; the reducer
    adopts it. Monotonic growth is the node's contract, so a list that does
    not extend the previous one is accepted with a warning.
    """
    current = list(current or [])
    update = list(update or [])
    if update[:len(current)] != current:
        logger.warning(
            "List channel update does not extend previous value",
            extra={"previous_length": len(current), "update_length": len(update)}
        )
    return update


@dataclass(frozen=True)
class Channel:
    """One named state field"""
    reducer: Reducer = replace
    default: Optional[Callable[[], Any]] = None

    def initial(self) -> Any:
        return self.default() if self.default is not None else None


BASE_CHANNELS: Dict[str, Channel] = {
    "current_step": Channel(default=lambda: "start"),
    "completed_steps": Channel(reducer=adopt_list, default=list),
    "errors": Channel(reducer=adopt_list, default=list),
    "error": Channel(),
    "status": Channel(),
    "action": Channel(),
    "resuming": Channel(default=lambda: False),
    "paused_at": Channel(),
}

TRACKING_FIELDS = frozenset(BASE_CHANNELS)


class StateSchema:
    """
    Per-workflow state declaration.

    Usage:
        StateSchema("summary", "description", quotes=Channel(reducer=adopt_list, default=list))
    """

    def __init__(self, *field_names: str, **channels: Channel):
        self.channels: Dict[str, Channel] = dict(BASE_CHANNELS)
        for name in field_names:
            self.channels[name] = Channel()
        self.channels.update(channels)

    def __contains__(self, name: str) -> bool:
        return name in self.channels

    @property
    def field_names(self) -> List[str]:
        return list(self.channels)

    def initial_state(self, values: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Fresh state: every channel's default, then the caller's values"""
        state = {name: channel.initial() for name, channel in self.channels.items()}
        return self.merge(state, self.declared_only(values or {}, "input"))

    def declared_only(self, values: Mapping[str, Any], source: str) -> Dict[str, Any]:
        """Drop (and log) keys that name no channel"""
        unknown = [key for key in values if key not in self.channels]
        if unknown:
            logger.warning(f"Ignoring undeclared state fields in {source}: {', '.join(sorted(unknown))}")
        return {key: value for key, value in values.items() if key in self.channels}

    def merge(self, state: Mapping[str, Any], update: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Apply a partial update through the channel reducers.

        Raises GraphExecutionError when the update names an undeclared field.
        """
        merged = dict(state)
        if not update:
            return merged

        for key, value in update.items():
            channel = self.channels.get(key)
            if channel is None:
                raise GraphExecutionError(f"Node update names undeclared state field: {key}")
            merged[key] = channel.reducer(merged.get(key), value)
        return merged


def data_fields(state: Mapping[str, Any]) -> Dict[str, Any]:
    """Workflow data without the tracking fields"""
    return {key: value for key, value in state.items() if key not in TRACKING_FIELDS}


def is_pause(update: Optional[Mapping[str, Any]]) -> bool:
    return bool(update) and update.get("status") == AWAITING_ACTION


def errors_of(state: Mapping[str, Any]) -> List[Dict[str, str]]:
    return list(state.get("errors") or [])


def steps_of(state: Mapping[str, Any]) -> List[str]:
    return list(state.get("completed_steps") or [])
