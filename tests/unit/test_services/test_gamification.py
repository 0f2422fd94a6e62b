"""Tests for the gamification engine."""

import pytest
from datetime import datetime, timedelta, timezone

from src.services.gamification import (
    AgentProgress,
    BADGE_INFO,
    apply_task_completion,
    calculate_level,
    check_badge_eligibility,
    level_progress,
    level_title,
    update_streak,
    xp_to_next_level,
)

NOON = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.parametrize("xp,level", [(0, 1), (99, 1), (100, 2), (250, 3), (1000, 11)])
def test_calculate_level(xp, level):
    """Test level is floor(xp / 100) + 1."""
    assert calculate_level(xp) == level


@pytest.mark.unit
def test_calculate_level_rejects_negative_xp():
    with pytest.raises(ValueError):
        calculate_level(-1)


@pytest.mark.unit
def test_level_helpers():
    """Test XP remaining, percent progress and title for dashboards."""
    assert xp_to_next_level(0) == 100
    assert xp_to_next_level(250) == 50
    assert level_progress(0) == 0
    assert level_progress(250) == 50
    assert level_progress(199) == 99


@pytest.mark.unit
@pytest.mark.parametrize("level,title", [
    (1, "Rookie"),
    (3, "Apprentice"),
    (5, "Skilled"),
    (10, "Veteran"),
    (15, "Expert"),
    (25, "Master"),
    (50, "Legendary"),
    (99, "Legendary"),
])
def test_level_title(level, title):
    assert level_title(level) == title


@pytest.mark.unit
def test_streak_first_completion_starts_at_one():
    assert update_streak(0, None, NOON) == 1


@pytest.mark.unit
def test_streak_same_day_unchanged():
    """Test a second completion on the same UTC day keeps the streak."""
    assert update_streak(4, NOON.replace(hour=1), NOON) == 4


@pytest.mark.unit
def test_streak_next_day_extends():
    assert update_streak(4, NOON - timedelta(days=1), NOON) == 5


@pytest.mark.unit
def test_streak_just_before_midnight_counts_as_yesterday():
    """Test day boundaries are UTC calendar days, not 24h windows."""
    last = datetime(2024, 12, 8, 23, 59, tzinfo=timezone.utc)
    now = datetime(2024, 12, 9, 0, 1, tzinfo=timezone.utc)
    assert update_streak(2, last, now) == 3


@pytest.mark.unit
def test_streak_gap_resets():
    assert update_streak(12, NOON - timedelta(days=2), NOON) == 1


@pytest.mark.unit
def test_streak_future_last_task_resets():
    """Test clock skew (last completion after now) restarts the streak."""
    assert update_streak(3, NOON + timedelta(days=1), NOON) == 1


@pytest.mark.unit
def test_streak_uses_utc_date_for_offset_timestamps():
    """Test a non-UTC timestamp is compared on its UTC date."""
    tz = timezone(timedelta(hours=-8))
    # 2024-12-08 20:00 at -08:00 is 2024-12-09 04:00 UTC
    last = datetime(2024, 12, 8, 20, 0, tzinfo=tz)
    assert update_streak(3, last, NOON) == 3


@pytest.mark.unit
def test_badges_first_task():
    assert check_badge_eligibility(1, 1, 1) == ["first-task"]


@pytest.mark.unit
def test_badges_thresholds():
    """Test count, level and streak thresholds are inclusive."""
    badges = check_badge_eligibility(100, 10, 7)
    assert badges == [
        "first-task", "task-10", "task-50", "task-100",
        "level-5", "level-10",
        "streak-7",
    ]


@pytest.mark.unit
def test_badges_below_thresholds():
    assert check_badge_eligibility(0, 4, 6) == []


@pytest.mark.unit
@pytest.mark.parametrize("hour,expected", [
    (0, ["night-owl", "early-bird"]),
    (4, ["night-owl", "early-bird"]),
    (5, ["early-bird"]),
    (6, []),
    (23, []),
])
def test_time_of_day_badges(hour, expected):
    """Test night owl covers 00-04 UTC and early bird 00-05 UTC."""
    assert check_badge_eligibility(0, 1, 0, completion_hour=hour) == expected


@pytest.mark.unit
def test_speed_demon_catalogued_but_never_awarded():
    assert "speed-demon" in BADGE_INFO
    assert "speed-demon" not in check_badge_eligibility(500, 50, 30, completion_hour=3)


@pytest.mark.unit
def test_every_awardable_badge_is_catalogued():
    for badge in check_badge_eligibility(500, 25, 30, completion_hour=0):
        assert badge in BADGE_INFO


@pytest.mark.unit
def test_first_completion():
    """Test a fresh agent's first completed task at noon."""
    award = apply_task_completion(AgentProgress(), NOON, xp_award=10)

    assert award.xp_awarded == 10
    assert award.progress.xp == 10
    assert award.progress.level == 1
    assert award.progress.total_tasks_done == 1
    assert award.progress.current_streak == 1
    assert award.progress.longest_streak == 1
    assert award.progress.badges == ["first-task"]
    assert award.progress.last_task_at == NOON
    assert award.new_badges == ["first-task"]
    assert not award.leveled_up


@pytest.mark.unit
def test_completion_levels_up():
    progress = AgentProgress(xp=95, level=1, total_tasks_done=9, badges=["first-task"])
    award = apply_task_completion(progress, NOON, xp_award=10)

    assert award.progress.xp == 105
    assert award.progress.level == 2
    assert award.leveled_up
    assert award.new_badges == ["task-10"]


@pytest.mark.unit
def test_completion_badges_are_monotonic():
    """Test held badges survive even when no longer qualified."""
    progress = AgentProgress(
        xp=10, total_tasks_done=1, current_streak=0, longest_streak=30,
        badges=["first-task", "streak-30", "night-owl"],
        last_task_at=NOON - timedelta(days=5),
    )
    award = apply_task_completion(progress, NOON, xp_award=10)

    assert award.progress.badges[:3] == ["first-task", "streak-30", "night-owl"]
    assert award.progress.current_streak == 1
    assert award.progress.longest_streak == 30
    assert award.new_badges == []


@pytest.mark.unit
def test_completion_night_owl_and_early_bird():
    award = apply_task_completion(AgentProgress(), NOON.replace(hour=3), xp_award=10)
    assert award.new_badges == ["first-task", "night-owl", "early-bird"]


@pytest.mark.unit
def test_completion_naive_time_treated_as_utc():
    award = apply_task_completion(AgentProgress(), datetime(2024, 12, 9, 2, 0), xp_award=10)

    assert award.progress.last_task_at == datetime(2024, 12, 9, 2, 0, tzinfo=timezone.utc)
    assert "night-owl" in award.new_badges


@pytest.mark.unit
def test_completion_extends_streak_and_longest():
    progress = AgentProgress(
        xp=60, total_tasks_done=6, current_streak=6, longest_streak=6,
        badges=["first-task"], last_task_at=NOON - timedelta(days=1),
    )
    award = apply_task_completion(progress, NOON, xp_award=10)

    assert award.progress.current_streak == 7
    assert award.progress.longest_streak == 7
    assert "streak-7" in award.new_badges


@pytest.mark.unit
def test_completion_does_not_mutate_input():
    progress = AgentProgress(badges=["first-task"], total_tasks_done=1, xp=10)
    apply_task_completion(progress, NOON, xp_award=10)

    assert progress.xp == 10
    assert progress.badges == ["first-task"]


@pytest.mark.unit
def test_completion_rejects_negative_award():
    with pytest.raises(ValueError):
        apply_task_completion(AgentProgress(), NOON, xp_award=-5)


@pytest.mark.unit
def test_level_and_streaks_consistent_over_many_completions():
    """Test level matches XP and longest >= current after a run of completions."""
    progress = AgentProgress()
    for day in range(40):
        moment = NOON + timedelta(days=day if day < 20 else day + 1)
        progress = apply_task_completion(progress, moment, xp_award=10).progress
        assert progress.level == calculate_level(progress.xp)
        assert progress.longest_streak >= progress.current_streak

    assert progress.total_tasks_done == 40
    assert progress.xp == 400
    assert progress.longest_streak == 20
    assert progress.current_streak == 20
    assert "streak-7" in progress.badges
    assert "streak-30" not in progress.badges


@pytest.mark.unit
def test_progress_from_agent_roundtrip_fields(freeze_time_fixture):
    from src.models.agent import Agent

    agent = Agent(id="a", name="A", type="qa", xp=30, level=1, total_tasks_done=3, badges=["first-task"])
    progress = AgentProgress.from_agent(agent)
    fields = apply_task_completion(progress, datetime.now(timezone.utc), xp_award=10).progress.to_fields()

    assert fields["xp"] == 40
    assert fields["total_tasks_done"] == 4
    assert fields["last_task_at"] == datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)
    assert set(fields) == {
        "xp", "level", "total_tasks_done", "current_streak",
        "longest_streak", "badges", "last_task_at",
    }
