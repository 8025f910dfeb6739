"""
Engine module - engine nodes and the supervisor restarting them.

Usage:
    from fireboom.engine import EngineSupervisor, StaticNode

    supervisor = EngineSupervisor(builder, models, bus, registry, node_factory=StaticNode)
    supervisor.build_and_start()
"""

from __future__ import annotations

from .node import EngineNode, StaticNode, SubprocessNode
from .supervisor import EngineSupervisor

__all__ = ["EngineNode", "EngineSupervisor", "StaticNode", "SubprocessNode"]
