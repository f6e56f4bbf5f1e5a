"""Static registry of CLI-runnable agents."""

from chief_of_staff.agents import email_assistant
from chief_of_staff.agents.base import AgentSpec

AGENTS: dict[str, AgentSpec] = {
    spec.name: spec
    for spec in (
        AgentSpec(
            name=email_assistant.NAME,
            description=email_assistant.DESCRIPTION,
            factory=email_assistant.EmailAssistantAgent,
        ),
    )
}


def get_agent_spec(name: str) -> AgentSpec | None:
    return AGENTS.get(name)
