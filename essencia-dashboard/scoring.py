# essencia-dashboard/scoring.py
"""
Points and goal engine.

Pure functions: they read a player's provider status, an optional stored report
and the team's goal configuration, and never raise on bad data. Anything
missing or malformed degrades to 0% / red / locked so a dashboard always renders.
"""
import logging
import math
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

import config
import utils
from models import (
    ComputedDashboardView,
    GoalConfig,
    GoalMetric,
    GoalSource,
    PlayerStatus,
    PointsResult,
    ProgressBar,
    ReportRecord,
    TeamGoalConfig,
    UnlockRule,
)

logger = logging.getLogger(__name__)

CHALLENGE_ID_KEYS = ("challenge", "challengeId", "id")
CHALLENGE_PERCENT_KEYS = ("percent_completed", "percentage", "progress")


# --- Numeric helpers ---

def sanitize_percentage(value: Any) -> float:
    """NaN, infinities, negatives and non-numbers become 0; others round to 2 decimals."""
    number = utils.to_number(value)
    if number is None or not math.isfinite(number) or number < 0:
        return 0.0
    return utils.round_half_up(number, 2)

def progress_color(percentage: Any) -> str:
    pct = sanitize_percentage(percentage)
    color = config.COLOR_BANDS[0][1]
    for lower_bound, band_color in config.COLOR_BANDS:
        if pct >= lower_bound:
            color = band_color
    return color

def progress_bar(percentage: Any) -> ProgressBar:
    # Each band fills a third of the bar; 100-150% fills the last third.
    pct = sanitize_percentage(percentage)
    if pct < 50:
        fill = (pct / 50) * 33.33
    elif pct < 100:
        fill = 33.33 + ((pct - 50) / 50) * 33.33
    else:
        fill = 66.66 + ((min(pct, config.PROGRESS_BAR_CAP) - 100) / 50) * 33.34
    return ProgressBar(percentage=pct, color=progress_color(pct), fill_percentage=utils.round_half_up(fill, 2))


# --- Catalog item flags ---

def owns_item(catalog_items: Optional[Dict[str, Any]], item_id: Optional[str]) -> bool:
    if not catalog_items or not item_id:
        return False
    count = utils.to_number(catalog_items.get(item_id))
    return count is not None and math.isfinite(count) and count > 0

def boost_flags(catalog_items: Optional[Dict[str, Any]], team_config: TeamGoalConfig) -> Tuple[bool, bool]:
    boosts = []
    for goal in (team_config.secondary_goal1, team_config.secondary_goal2):
        boosts.append(owns_item(catalog_items, goal.boost.catalog_item_id if goal.boost else None))
    return boosts[0], boosts[1]


# --- Points / unlock calculator ---

def should_unlock(percentage: Any, threshold: float = config.UNLOCK_THRESHOLD) -> bool:
    """Threshold rule: exactly the threshold unlocks."""
    return sanitize_percentage(percentage) >= threshold

def boost_multiplier(boost1_active: bool, boost2_active: bool) -> int:
    return 1 + (1 if boost1_active else 0) + (1 if boost2_active else 0)

def calculate_points(
    base_points: Any,
    locked: bool,
    boost1_active: bool = False,
    boost2_active: bool = False,
) -> PointsResult:
    base = utils.to_number(base_points)
    if base is None or not math.isfinite(base) or base < 0:
        base = 0.0

    multiplier = 1 if locked else boost_multiplier(boost1_active, boost2_active)
    boosted = base * multiplier
    if not math.isfinite(boosted):
        logger.warning("Boosted points overflow for base %s, counting 0", base)
        base = boosted = 0.0
    final_points = int(utils.round_half_up(boosted))

    return PointsResult(
        base_points=int(utils.round_half_up(base)),
        final_points=final_points,
        locked=locked,
        boost_multiplier=multiplier,
        boost1_active=bool(boost1_active),
        boost2_active=bool(boost2_active),
    )

def is_points_locked(
    team_config: TeamGoalConfig,
    catalog_items: Optional[Dict[str, Any]],
    controlling_percentage: Any = 0,
) -> bool:
    if team_config.unlock_rule == UnlockRule.THRESHOLD:
        return not should_unlock(controlling_percentage, team_config.unlock_threshold)
    return not owns_item(catalog_items, team_config.unlock_catalog_item)

def calculate_team_points(
    team_config: TeamGoalConfig,
    base_points: Any,
    catalog_items: Optional[Dict[str, Any]],
    controlling_percentage: Any = 0,
) -> PointsResult:
    boost1, boost2 = boost_flags(catalog_items, team_config)
    locked = is_points_locked(team_config, catalog_items, controlling_percentage)
    return calculate_points(base_points, locked, boost1, boost2)


# --- Goal resolver ---

def _challenge_id(entry: Dict[str, Any]) -> Optional[str]:
    for key in CHALLENGE_ID_KEYS:
        if entry.get(key):
            return entry[key]
    return None

def _challenge_percentage(entry: Dict[str, Any]) -> Any:
    for key in CHALLENGE_PERCENT_KEYS:
        if entry.get(key) is not None:
            return entry[key]
    return 0

def find_challenge_percentage(challenge_progress: Optional[Iterable[Any]], challenge_ids: List[str]) -> Optional[float]:
    """First progress entry whose id is configured for the goal, or None."""
    if not challenge_progress or not challenge_ids:
        return None
    for entry in challenge_progress:
        if isinstance(entry, dict) and _challenge_id(entry) in challenge_ids:
            return sanitize_percentage(_challenge_percentage(entry))
    return None

def resolve_percentage(
    goal: GoalConfig,
    challenge_progress: Optional[Iterable[Any]],
    report: Optional[ReportRecord],
) -> Tuple[float, GoalSource]:
    report_value = getattr(report, goal.name, None) if report is not None else None
    if report_value is not None:
        return sanitize_percentage(report_value), GoalSource.REPORT

    challenge_value = find_challenge_percentage(challenge_progress, goal.challenge_ids)
    if challenge_value is not None:
        return challenge_value, GoalSource.CHALLENGE

    return 0.0, GoalSource.DEFAULT

def build_goal_metric(
    goal: GoalConfig,
    percentage: float,
    source: GoalSource,
    *,
    is_main_goal: bool = False,
    unlock_threshold: Optional[float] = None,
    boost_active: bool = False,
) -> GoalMetric:
    bar = progress_bar(percentage)
    return GoalMetric(
        name=goal.name,
        display_name=goal.display_name,
        percentage=bar.percentage,
        color=bar.color,
        progress_bar=bar,
        source=source,
        emoji=goal.emoji,
        unit=goal.unit,
        is_main_goal=is_main_goal,
        is_unlock_goal=unlock_threshold is not None,
        unlock_threshold=unlock_threshold,
        has_boost=goal.boost is not None,
        boost_active=boost_active,
    )

def resolve_goals(
    team_config: TeamGoalConfig,
    challenge_progress: Optional[Iterable[Any]],
    report: Optional[ReportRecord] = None,
    catalog_items: Optional[Dict[str, Any]] = None,
) -> Tuple[GoalMetric, GoalMetric, GoalMetric]:
    primary_pct, primary_source = resolve_percentage(team_config.primary_goal, challenge_progress, report)
    unlock_threshold = team_config.unlock_threshold if team_config.unlock_rule == UnlockRule.THRESHOLD else None
    primary = build_goal_metric(
        team_config.primary_goal, primary_pct, primary_source,
        is_main_goal=True, unlock_threshold=unlock_threshold,
    )

    boost1, boost2 = boost_flags(catalog_items, team_config)
    secondaries = []
    for goal, active in ((team_config.secondary_goal1, boost1), (team_config.secondary_goal2, boost2)):
        pct, source = resolve_percentage(goal, challenge_progress, report)
        secondaries.append(build_goal_metric(goal, pct, source, boost_active=active))

    return primary, secondaries[0], secondaries[1]


# --- Full dashboard view ---

def build_dashboard_view(
    player: PlayerStatus,
    team_config: TeamGoalConfig,
    report: Optional[ReportRecord] = None,
    today: Optional[date] = None,
) -> ComputedDashboardView:
    if report is not None and report.team and report.team != team_config.team_type.value:
        logger.warning("Team mismatch for player %s: dashboard=%s report=%s", player.id, team_config.team_type.value, report.team)

    primary, secondary1, secondary2 = resolve_goals(team_config, player.challenge_progress, report, player.catalog_items)
    points = calculate_team_points(team_config, player.total_points, player.catalog_items, primary.percentage)

    cycle_day = utils.current_cycle_day(report.current_cycle_day if report else None, today)
    cycle_total = utils.total_cycle_days(report.total_cycle_days if report else None)

    return ComputedDashboardView(
        player_id=player.id,
        player_name=player.name,
        team_type=team_config.team_type,
        base_points=points.base_points,
        total_points=points.final_points,
        points_locked=points.locked,
        boost_multiplier=points.boost_multiplier,
        current_cycle_day=cycle_day,
        total_cycle_days=cycle_total,
        days_remaining_in_cycle=utils.days_remaining(cycle_day, cycle_total),
        is_data_from_collection=report is not None,
        primary_goal=primary,
        secondary_goal1=secondary1,
        secondary_goal2=secondary2,
    )
