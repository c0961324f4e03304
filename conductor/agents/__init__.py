"""
Conductor - Agents
"""
from .base import Agent, AgentResponse, AgentCapabilities, FunctionAgent
from .registry import AgentRegistry, registry
from .library import LLMAgent, ChatAgent, TaskAgent, ResearchAgent, BUILTIN_AGENTS

__all__ = [
    "Agent",
    "AgentResponse",
    "AgentCapabilities",
    "FunctionAgent",
    "AgentRegistry",
    "registry",
    "LLMAgent",
    "ChatAgent",
    "TaskAgent",
    "ResearchAgent",
    "BUILTIN_AGENTS",
]
