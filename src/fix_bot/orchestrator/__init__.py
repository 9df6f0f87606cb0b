"""LangGraph orchestrator package for the fix pipeline."""

from fix_bot.orchestrator.exceptions import GraphBuildError, OrchestratorError
from fix_bot.orchestrator.graph import build_graph, route_after
from fix_bot.orchestrator.state import FixState, make_initial_state

__all__ = [
    "FixState",
    "GraphBuildError",
    "OrchestratorError",
    "build_graph",
    "make_initial_state",
    "route_after",
]
