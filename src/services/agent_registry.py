"""Agent registry - registration, heartbeats and progression views."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from src.models.agent import Agent, AgentProfile, AgentStatus, AgentType
from src.models.agent_task import enum_values
from src.services.gamification import level_progress, level_title, xp_to_next_level
from src.services.task_store import TaskStore
from src.utils.errors import TaskValidationError
from src.utils.logging import get_structured_logger, get_correlation_id

logger = get_structured_logger(__name__)

# Fields a registration may set; gamification stats only change on task completion
REGISTRATION_FIELDS = ("id", "name", "type", "description", "capabilities", "status")


def build_profile(agent: Agent) -> AgentProfile:
    return AgentProfile(
        agent=agent,
        level_title=level_title(agent.level),
        xp_to_next_level=xp_to_next_level(agent.xp),
        level_progress=level_progress(agent.xp),
    )


class AgentRegistry:
    """Register agents and report their status and progression."""

    def __init__(self, store: TaskStore):
        self.store = store

    async def register(self, data: dict) -> Agent:
        """
        Register or update an agent (upsert on id).

        Existing XP, streaks, badges and created_at are preserved.
        """
        if not data.get("id") or not data.get("name") or not data.get("type"):
            raise TaskValidationError("Missing required fields: id, name and type are required")
        if data["type"] not in enum_values(AgentType):
            allowed = enum_values(AgentType)
            raise TaskValidationError(
                f"Invalid type. Must be one of: {', '.join(allowed)}", field="type", allowed=allowed
            )
        if data.get("status") and data["status"] not in enum_values(AgentStatus):
            allowed = enum_values(AgentStatus)
            raise TaskValidationError(
                f"Invalid status. Must be one of: {', '.join(allowed)}", field="status", allowed=allowed
            )

        now = datetime.now(timezone.utc)
        updates = {key: data[key] for key in REGISTRATION_FIELDS if data.get(key) is not None}
        updates["last_seen"] = now

        existing = await self.store.get_agent_by_id(data["id"])
        try:
            if existing is not None:
                agent = Agent.model_validate({**existing.model_dump(), **updates})
            else:
                agent = Agent.model_validate({**updates, "created_at": now})
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else None
            raise TaskValidationError(f"Invalid {field}: {first['msg']}", field=field) from e

        saved = await self.store.upsert_agent(agent)
        logger.info(
            "Agent registered",
            correlation_id=get_correlation_id(),
            agent_id=saved.id,
            agent_type=saved.type.value,
            is_new=existing is None
        )
        return saved

    async def heartbeat(self, agent_id: str) -> bool:
        """Mark an agent active and seen now. False if it is not registered."""
        updated = await self.store.update_agent_fields(
            agent_id,
            {"last_seen": datetime.now(timezone.utc), "status": AgentStatus.ACTIVE}
        )
        if not updated:
            logger.warning("Heartbeat for unknown agent", agent_id=agent_id)
        return updated

    async def get_agent(self, agent_id: str) -> Optional[Agent]:
        return await self.store.get_agent_by_id(agent_id)

    async def list_agents(self) -> list[Agent]:
        return await self.store.list_agents()

    async def get_agent_profile(self, agent_id: str) -> Optional[AgentProfile]:
        agent = await self.store.get_agent_by_id(agent_id)
        return build_profile(agent) if agent else None

    async def leaderboard(self, limit: int = 10) -> list[AgentProfile]:
        """Agents by XP, ties broken by tasks done."""
        agents = await self.store.list_agents()
        ranked = sorted(agents, key=lambda a: (-a.xp, -a.total_tasks_done, a.name))
        return [build_profile(agent) for agent in ranked[:limit]]
