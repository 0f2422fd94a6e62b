"""Gamification engine - XP, levels, daily streaks and badges for agents.

Pure computation: callers pass in the agent's current progress and the
completion time, and persist the returned values themselves.

All calendar logic is in UTC. "Today" for streaks is the UTC date of the
completion, and the time-of-day badges use the UTC hour.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field

from src.models.agent import Agent
from src.utils.config import TaskQueueConfig

XP_PER_TASK = TaskQueueConfig.XP_PER_TASK
XP_PER_LEVEL = 100

# (badge id, total tasks done)
TASK_COUNT_BADGES = (
    ("first-task", 1),
    ("task-10", 10),
    ("task-50", 50),
    ("task-100", 100),
    ("task-500", 500),
)
LEVEL_BADGES = (
    ("level-5", 5),
    ("level-10", 10),
    ("level-25", 25),
)
STREAK_BADGES = (
    ("streak-7", 7),
    ("streak-30", 30),
)
# UTC hour ranges [start, end). These overlap on purpose: a completion
# between 00:00 and 04:59 earns both.
NIGHT_OWL_HOURS = (0, 5)
EARLY_BIRD_HOURS = (0, 6)

LEVEL_TITLES = (
    (50, "Legendary"),
    (25, "Master"),
    (15, "Expert"),
    (10, "Veteran"),
    (5, "Skilled"),
    (3, "Apprentice"),
)

BADGE_INFO: dict[str, dict[str, str]] = {
    "first-task": {"name": "First Steps", "description": "Completed first task"},
    "task-10": {"name": "Warming Up", "description": "Completed 10 tasks"},
    "task-50": {"name": "Seasoned", "description": "Completed 50 tasks"},
    "task-100": {"name": "Centurion", "description": "Completed 100 tasks"},
    "task-500": {"name": "Legend", "description": "Completed 500 tasks"},
    "level-5": {"name": "Rising Star", "description": "Reached level 5"},
    "level-10": {"name": "Expert", "description": "Reached level 10"},
    "level-25": {"name": "Master", "description": "Reached level 25"},
    "streak-7": {"name": "Week Warrior", "description": "7 day task streak"},
    "streak-30": {"name": "Monthly Master", "description": "30 day task streak"},
    "speed-demon": {"name": "Speed Demon", "description": "Completed 5 tasks in 1 hour"},
    "night-owl": {"name": "Night Owl", "description": "Completed task after midnight"},
    "early-bird": {"name": "Early Bird", "description": "Completed task before 6 AM"},
}


class AgentProgress(BaseModel):
    """The slice of an agent record the engine reads and writes."""
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    total_tasks_done: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    badges: list[str] = Field(default_factory=list)
    last_task_at: Optional[datetime] = None

    @classmethod
    def from_agent(cls, agent: Agent) -> "AgentProgress":
        return cls(
            xp=agent.xp,
            level=agent.level,
            total_tasks_done=agent.total_tasks_done,
            current_streak=agent.current_streak,
            longest_streak=agent.longest_streak,
            badges=list(agent.badges),
            last_task_at=agent.last_task_at,
        )

    def to_fields(self) -> dict:
        """Agent row fields to persist."""
        return self.model_dump()


class CompletionAward(BaseModel):
    """Outcome of one task completion."""
    progress: AgentProgress
    xp_awarded: int
    new_badges: list[str] = Field(default_factory=list)
    leveled_up: bool = False


def calculate_level(xp: int) -> int:
    """Level 1 starts at 0 XP, every XP_PER_LEVEL adds a level."""
    if xp < 0:
        raise ValueError("xp must be non-negative")
    return xp // XP_PER_LEVEL + 1


def xp_to_next_level(xp: int) -> int:
    return calculate_level(xp) * XP_PER_LEVEL - xp


def level_progress(xp: int) -> int:
    """Percent (0-100) of the current level already earned."""
    return round((xp % XP_PER_LEVEL) / XP_PER_LEVEL * 100)


def level_title(level: int) -> str:
    for threshold, title in LEVEL_TITLES:
        if level >= threshold:
            return title
    return "Rookie"


def _utc_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def update_streak(current_streak: int, last_task_at: Optional[datetime], now: datetime) -> int:
    """Daily streak after a completion at ``now``.

    Same UTC day as the last completion keeps the streak, the next day
    extends it, anything else (gap, no history, clock skew) restarts at 1.
    """
    if last_task_at is None:
        return 1

    today = _utc_date(now)
    last_day = _utc_date(last_task_at)

    if last_day == today:
        return current_streak
    if last_day == today - timedelta(days=1):
        return current_streak + 1
    return 1


def check_badge_eligibility(
    total_tasks_done: int,
    level: int,
    current_streak: int,
    completion_hour: Optional[int] = None
) -> list[str]:
    """Every badge the given counters qualify for, in catalogue order."""
    eligible = [badge for badge, needed in TASK_COUNT_BADGES if total_tasks_done >= needed]
    eligible += [badge for badge, needed in LEVEL_BADGES if level >= needed]
    eligible += [badge for badge, needed in STREAK_BADGES if current_streak >= needed]

    if completion_hour is not None:
        if NIGHT_OWL_HOURS[0] <= completion_hour < NIGHT_OWL_HOURS[1]:
            eligible.append("night-owl")
        if EARLY_BIRD_HOURS[0] <= completion_hour < EARLY_BIRD_HOURS[1]:
            eligible.append("early-bird")

    return eligible


def apply_task_completion(
    progress: AgentProgress,
    completed_at: datetime,
    xp_award: int = XP_PER_TASK
) -> CompletionAward:
    """Compute an agent's progress after completing one task.

    Badges already held are kept; newly qualified ones are appended.
    """
    if xp_award < 0:
        raise ValueError("xp_award must be non-negative")
    if completed_at.tzinfo is None:
        completed_at = completed_at.replace(tzinfo=timezone.utc)
    completed_at = completed_at.astimezone(timezone.utc)

    current_streak = update_streak(progress.current_streak, progress.last_task_at, completed_at)
    longest_streak = max(progress.longest_streak, current_streak)

    new_xp = progress.xp + xp_award
    new_level = calculate_level(new_xp)
    total_tasks_done = progress.total_tasks_done + 1

    badges = list(progress.badges)
    new_badges = []
    for badge in check_badge_eligibility(
        total_tasks_done, new_level, current_streak, completed_at.hour
    ):
        if badge not in badges:
            badges.append(badge)
            new_badges.append(badge)

    updated = AgentProgress(
        xp=new_xp,
        level=new_level,
        total_tasks_done=total_tasks_done,
        current_streak=current_streak,
        longest_streak=longest_streak,
        badges=badges,
        last_task_at=completed_at,
    )
    return CompletionAward(
        progress=updated,
        xp_awarded=xp_award,
        new_badges=new_badges,
        leveled_up=new_level > calculate_level(progress.xp),
    )
