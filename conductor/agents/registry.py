"""
Conductor - Agent Registry

Thread-safe name -> agent lookup used by the step executor.
"""
import threading
from typing import Dict, List, Optional, Set

from .base import Agent
from ..config import get_logger

_logger = get_logger("agents.registry")


class AgentRegistry:
    """
    Agent Registry - manages available agents.

    Operations:
        - register(): Add or replace an agent
        - unregister(): Remove an agent
        - get(): Get agent by name
        - list(): Names of all agents
    """

    def __init__(self):
        """Initialize empty registry."""
        self._agents: Dict[str, Agent] = {}
        self._lock = threading.Lock()

    def register(self, name: str, agent: Agent) -> None:
        """
        Register an agent, replacing any agent with the same name.

        Raises:
            ValueError: If name is empty
            TypeError: If agent is None
        """
        if not name or not name.strip():
            raise ValueError("Agent name cannot be empty")
        if agent is None:
            raise TypeError(f"Agent for '{name}' cannot be None")

        with self._lock:
            replaced = name in self._agents
            self._agents[name] = agent

        if replaced:
            _logger.info("Replaced existing agent: %s", name)
        else:
            _logger.debug("Registered agent: %s", name)

    def unregister(self, name: str) -> bool:
        """
        Remove agent from registry.

        Returns:
            True if removed, False if not found
        """
        with self._lock:
            removed = self._agents.pop(name, None) is not None
        if removed:
            _logger.debug("Unregistered agent: %s", name)
        return removed

    def get(self, name: str) -> Optional[Agent]:
        """Get agent by name."""
        with self._lock:
            return self._agents.get(name)

    def exists(self, name: str) -> bool:
        """Check if agent exists."""
        with self._lock:
            return name in self._agents

    def list(self) -> Set[str]:
        """Names of all registered agents."""
        with self._lock:
            return set(self._agents)

    def list_agents(self) -> List[Agent]:
        """All registered agents."""
        with self._lock:
            return list(self._agents.values())

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._agents)

    def clear(self) -> None:
        """Remove all agents from registry."""
        with self._lock:
            self._agents.clear()

    def __len__(self) -> int:
        return self.count

    def __contains__(self, name: str) -> bool:
        return self.exists(name)


# Global instance
registry = AgentRegistry()
