"""
Conductor - Factory

Builds a wired Orchestrator from Settings.
"""
from typing import Optional

from .agents import AgentRegistry, BUILTIN_AGENTS
from .config import Settings, get_logger
from .config import settings as default_settings
from .executor import (
    Orchestrator,
    OrchestratorConfig,
    SentinelExecutor,
    SentinelExecutorConfig,
    StepExecutor,
    StepExecutorConfig,
)
from .llm import CompletionClient, MockCompletionClient
from .planning import PlanningEngine, PlanningEngineConfig

_logger = get_logger("factory")


def register_builtin_agents(registry: AgentRegistry, client: CompletionClient) -> None:
    """Register chat, task and research agents backed by `client`."""
    for agent_cls in BUILTIN_AGENTS:
        agent = agent_cls(client)
        registry.register(agent.name, agent)


def create_orchestrator(
    client: Optional[CompletionClient] = None,
    registry: Optional[AgentRegistry] = None,
    settings: Optional[Settings] = None,
) -> Orchestrator:
    """
    Wire registry, executors, planning engine and orchestrator.

    Args:
        client: Oracle (defaults to MockCompletionClient)
        registry: Agents; built-in agents are added when it is empty
        settings: Configuration (defaults to the global settings)

    Returns:
        Ready Orchestrator
    """
    settings = settings or default_settings
    client = client or MockCompletionClient()
    registry = registry if registry is not None else AgentRegistry()

    if registry.count == 0:
        register_builtin_agents(registry, client)

    step_executor = StepExecutor(
        registry,
        StepExecutorConfig.from_settings(settings.step_executor),
    )
    sentinel_executor = SentinelExecutor(
        client,
        SentinelExecutorConfig.from_settings(settings.sentinel),
    )
    planner = PlanningEngine(
        client,
        PlanningEngineConfig.from_settings(settings.planning),
        registry=registry,
    )

    _logger.debug(
        "Orchestrator created with %d agents: %s",
        registry.count, ", ".join(sorted(registry.list())),
    )
    return Orchestrator(
        step_executor,
        sentinel_executor,
        planner,
        OrchestratorConfig.from_settings(settings.orchestrator),
    )
