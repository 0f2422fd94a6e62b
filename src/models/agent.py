"""Agent model - autonomous workers that claim tasks, plus their gamification stats."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class AgentType(str, Enum):
    """Agent category tags."""
    SOCIAL = "social"
    EDITORIAL = "editorial"
    ENGINEERING = "engineering"
    QA = "qa"
    AUTOMATION = "automation"
    ORCHESTRATOR = "orchestrator"
    CREATIVE = "creative"
    AI = "ai"


class AgentStatus(str, Enum):
    """Agent availability."""
    ACTIVE = "active"
    PAUSED = "paused"
    OFFLINE = "offline"


class Agent(BaseModel):
    """Agent model - one row of the agents table."""
    id: str = Field(..., min_length=1, description="Agent ID (matches task assigned_to)")
    name: str = Field(..., min_length=1, description="Display name")
    type: AgentType = Field(..., description="Agent category")
    description: Optional[str] = None
    capabilities: list[str] = Field(default_factory=list, description="Task types this agent performs")
    status: AgentStatus = Field(default=AgentStatus.ACTIVE)
    last_seen: Optional[datetime] = Field(None, description="Heartbeat timestamp")
    created_at: Optional[datetime] = None
    # Gamification
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    total_tasks_done: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    badges: list[str] = Field(default_factory=list, description="Earned badge IDs")
    last_task_at: Optional[datetime] = Field(None, description="Most recent completed task")


class AgentProfile(BaseModel):
    """Agent with derived progression values for dashboards."""
    agent: Agent
    level_title: str
    xp_to_next_level: int
    level_progress: int = Field(..., ge=0, le=100, description="Percent of current level completed")
