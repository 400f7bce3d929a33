# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Graph Execution Engine

A workflow is a graph of named async nodes. Each node receives the full
state and returns a partial update, merged through the StateSchema
reducers. After the merge the next node is chosen by a static edge or by
a routing function evaluated on the merged state.

Nodes run strictly one at a time. A node whose update carries
``status="awaiting_action"`` interrupts the run; the caller decides what
to do with the interrupted state.
"""

import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from waypoint.core.errors import GraphExecutionError, GraphValidationError
from waypoint.workflow.state import StateSchema, is_pause

logger = logging.getLogger(__name__)

START = "__start__"
END = "__end__"

DEFAULT_MAX_STEPS = 25

NodeFn = Callable[[Dict[str, Any]], Awaitable[Optional[Mapping[str, Any]]]]
Router = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class Node:
    name: str
    fn: NodeFn
    fallible: bool = False


@dataclass(frozen=True)
class ConditionalEdge:
    router: Router
    path_map: Optional[Dict[str, str]] = None

    def targets(self) -> Optional[Set[str]]:
        """Possible destinations, or None when the router is unconstrained"""
        if self.path_map is None:
            return None
        return set(self.path_map.values())


@dataclass
class GraphRun:
    """Outcome of one invocation"""
    state: Dict[str, Any]
    visited: List[str] = field(default_factory=list)
    interrupted: bool = False
    interrupted_at: Optional[str] = None


class StateGraph:
    """
    Builder for a workflow graph.

    Usage:
        graph = StateGraph(schema)
        graph.add_node("generate", generate, fallible=True)
        graph.add_node("process", process)
        graph.set_entry_point("generate")
        graph.add_conditional_edges("generate", route_on_error, {"ok": "process", "error": END})
        graph.add_edge("process", END)
        compiled = graph.compile()
    """

    def __init__(self, schema: StateSchema):
        self.schema = schema
        self.nodes: Dict[str, Node] = {}
        self.edges: Dict[str, str] = {}
        self.branches: Dict[str, ConditionalEdge] = {}

    def add_node(self, name: str, fn: NodeFn, fallible: bool = False) -> "StateGraph":
        """
        Register a node.

        ``fallible`` nodes may report errors in state and must leave through
        a conditional edge that can inspect them.
        """
        if name in (START, END):
            raise GraphValidationError(f"Node name '{name}' is reserved", field="nodes")
        if name in self.nodes:
            raise GraphValidationError(f"Duplicate node: {name}", field="nodes")
        self.nodes[name] = Node(name=name, fn=fn, fallible=fallible)
        return self

    def add_edge(self, source: str, target: str) -> "StateGraph":
        self._claim_source(source)
        self.edges[source] = target
        return self

    def add_conditional_edges(
        self,
        source: str,
        router: Router,
        path_map: Optional[Mapping[str, str]] = None
    ) -> "StateGraph":
        self._claim_source(source)
        self.branches[source] = ConditionalEdge(
            router=router,
            path_map=dict(path_map) if path_map is not None else None
        )
        return self

    def set_entry_point(self, name: str) -> "StateGraph":
        return self.add_edge(START, name)

    def _claim_source(self, source: str) -> None:
        if source in self.edges or source in self.branches:
            raise GraphValidationError(f"Node '{source}' already has an outgoing edge", field="edges")

    def compile(self, max_steps: int = DEFAULT_MAX_STEPS) -> "CompiledGraph":
        """Validate the topology and freeze it into an executable graph"""
        self._validate()
        return CompiledGraph(
            schema=self.schema,
            nodes=dict(self.nodes),
            edges=dict(self.edges),
            branches=dict(self.branches),
            max_steps=max_steps,
        )

    # ========================================================================
    # Validation
    # ========================================================================

    def _validate(self) -> None:
        if not self.nodes:
            raise GraphValidationError("Graph must have at least one node", field="nodes")

        if START not in self.edges and START not in self.branches:
            raise GraphValidationError("Graph has no entry point", field="edges")

        known = set(self.nodes) | {END}

        for source, target in self.edges.items():
            if source != START and source not in self.nodes:
                raise GraphValidationError(f"Edge references non-existent node: {source}", field="edges")
            if target not in known:
                raise GraphValidationError(f"Edge references non-existent node: {target}", field="edges")

        for source, branch in self.branches.items():
            if source != START and source not in self.nodes:
                raise GraphValidationError(f"Edge references non-existent node: {source}", field="edges")
            for target in branch.targets() or ():
                if target not in known:
                    raise GraphValidationError(
                        f"Conditional edge from '{source}' references non-existent node: {target}",
                        field="edges"
                    )

        for name, node in self.nodes.items():
            if name not in self.edges and name not in self.branches:
                raise GraphValidationError(f"Node '{name}' has no outgoing edge", field="edges")
            if node.fallible and name not in self.branches:
                raise GraphValidationError(
                    f"Fallible node '{name}' must route through a conditional edge that inspects errors",
                    field="edges"
                )

        unreachable = set(self.nodes) - self._reachable()
        if unreachable:
            raise GraphValidationError(
                f"Unreachable nodes: {sorted(unreachable)}",
                field="edges"
            )

    def _reachable(self) -> Set[str]:
        """BFS from START; an unconstrained router makes every node reachable"""
        visited: Set[str] = set()
        queue = deque([START])

        while queue:
            name = queue.popleft()
            if name in visited or name == END:
                continue
            visited.add(name)

            if name in self.edges:
                queue.append(self.edges[name])
            elif name in self.branches:
                targets = self.branches[name].targets()
                if targets is None:
                    return set(self.nodes)
                queue.extend(targets)

        visited.discard(START)
        return visited


class CompiledGraph:
    """
    Executable graph. Holds no per-run state, so one instance can be
    invoked repeatedly and concurrently.
    """

    def __init__(
        self,
        schema: StateSchema,
        nodes: Dict[str, Node],
        edges: Dict[str, str],
        branches: Dict[str, ConditionalEdge],
        max_steps: int = DEFAULT_MAX_STEPS
    ):
        self.schema = schema
        self.nodes = nodes
        self.edges = edges
        self.branches = branches
        self.max_steps = max_steps

    @property
    def node_names(self) -> List[str]:
        return list(self.nodes)

    async def invoke(self, state: Mapping[str, Any], max_steps: Optional[int] = None) -> GraphRun:
        """
        Run from the entry point until END or a pause.

        ``max_steps`` overrides the limit given at compile time.
        Exceptions raised by a node propagate unchanged.
        """
        limit = max_steps if max_steps is not None else self.max_steps
        run = GraphRun(state=dict(state))
        current = await self._next(START, run.state)

        while current != END:
            if len(run.visited) >= limit:
                raise GraphExecutionError(
                    f"Step limit of {limit} exceeded before running node {current}",
                    step=current
                )

            logger.debug(f"Executing node {current}")
            update = await self.nodes[current].fn(run.state)
            run.state = self.schema.merge(run.state, update)
            run.visited.append(current)

            if is_pause(update):
                logger.info(f"Node {current} requested an external action")
                run.interrupted = True
                run.interrupted_at = current
                return run

            current = await self._next(current, run.state)

        return run

    async def _next(self, source: str, state: Dict[str, Any]) -> str:
        if source in self.edges:
            return self.edges[source]

        branch = self.branches[source]
        key = branch.router(state)
        if inspect.isawaitable(key):
            key = await key

        target = branch.path_map.get(key) if branch.path_map is not None else key
        if target != END and target not in self.nodes:
            raise GraphExecutionError(
                f"Router for '{source}' returned unknown destination: {key!r}",
                step=source
            )
        return target
