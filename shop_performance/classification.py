"""
Goal Classification

Maps a shop's projected revenue against its goals to a ColorCategory.
Rules are evaluated in order, first match wins:

1. projected <= 0                                   -> no-color
2. feasible goal missing or 0                       -> no-color
3. breakthrough set and projected > breakthrough    -> green
4. projected >= feasible                            -> yellow
5. projected >= feasible * near_goal_ratio (0.8)    -> red
6. otherwise                                        -> purple

Reaching the breakthrough goal exactly is not green; reaching the feasible
goal exactly is yellow.
"""

from typing import Optional

from shop_performance.config import get_settings
from shop_performance.models import ColorCategory, GoalThresholds


def _near_goal_ratio(override: Optional[float]) -> float:
    if override is not None:
        if not 0 < override <= 1:
            raise ValueError("near_goal_ratio must be in the range (0, 1]")
        return override
    return get_settings().classification.near_goal_ratio


def classify(
    projected_revenue: Optional[float],
    feasible_goal: Optional[float],
    breakthrough_goal: Optional[float] = None,
    near_goal_ratio: Optional[float] = None,
) -> ColorCategory:
    """Classify one shop; pure, total over all inputs"""
    if projected_revenue is None or projected_revenue <= 0:
        return ColorCategory.NO_COLOR
    if not feasible_goal:
        return ColorCategory.NO_COLOR
    if breakthrough_goal is not None and projected_revenue > breakthrough_goal:
        return ColorCategory.GREEN
    if projected_revenue >= feasible_goal:
        return ColorCategory.YELLOW
    if projected_revenue >= feasible_goal * _near_goal_ratio(near_goal_ratio):
        return ColorCategory.RED
    return ColorCategory.PURPLE


def classify_goals(
    projected_revenue: Optional[float],
    goals: Optional[GoalThresholds],
    near_goal_ratio: Optional[float] = None,
) -> ColorCategory:
    """classify() with goals taken from a GoalThresholds row (None: no goals)"""
    if goals is None:
        return ColorCategory.NO_COLOR
    return classify(
        projected_revenue,
        goals.feasible_goal,
        goals.breakthrough_goal,
        near_goal_ratio=near_goal_ratio,
    )
