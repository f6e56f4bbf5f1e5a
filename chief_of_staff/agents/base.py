"""Agent interface and registry entry type."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class AgentRunError(Exception):
    """Raised by an agent's run() when the run cannot complete."""


@runtime_checkable
class Agent(Protocol):
    """Interface every CLI-runnable agent implements."""

    name: str
    description: str

    async def run(self) -> None:
        """Run the agent once.

        Partial success is normal: item-level failures are logged inside the
        agent.  Raise AgentRunError only when the run as a whole failed.
        """
        ...


#: Builds a fresh agent; called once per run.
AgentFactory = Callable[[], Agent]


@dataclass(frozen=True)
class AgentSpec:
    """Registry entry. Listing reads name/description without building the agent."""

    name: str
    description: str
    factory: AgentFactory
