"""
Goal persistence scoped to a board and its owner, plus completion stats.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from visionboard.boards import BoardStore
from visionboard.db import DbClient, GoalRecord
from visionboard.errors import AccessDenied, NotFound, ValidationError

logger = logging.getLogger(__name__)


class CompletableGoal(Protocol):
    is_completed: bool


@dataclass(frozen=True)
class GoalStats:
    total: int
    completed: int
    pending: int
    percentage: float

    @property
    def display_percentage(self) -> int:
        """Rounded half up, for display only."""
        return int(math.floor(self.percentage + 0.5))


def aggregate(goals: Iterable[CompletableGoal]) -> GoalStats:
    total = 0
    completed = 0
    for goal in goals:
        total += 1
        if goal.is_completed:
            completed += 1
    percentage = (completed / total) * 100 if total else 0.0
    return GoalStats(
        total=total,
        completed=completed,
        pending=total - completed,
        percentage=percentage,
    )


def clean_goal_input(
    title: Optional[str], description: Optional[str]
) -> tuple[str, Optional[str]]:
    trimmed = (title or "").strip()
    if not trimmed:
        raise ValidationError("Goal title is required.")
    desc = (description or "").strip() or None
    return trimmed, desc


class GoalStore:
    def __init__(self, db: DbClient, boards: BoardStore):
        self.db = db
        self.boards = boards

    def list_goals(self, board_id: str, owner_id: str) -> list[GoalRecord]:
        return self.db.list_goals(board_id, owner_id)

    def stats(self, board_id: str, owner_id: str) -> GoalStats:
        return aggregate(self.list_goals(board_id, owner_id))

    def _get_owned(self, goal_id: str, owner_id: str) -> GoalRecord:
        goal = self.db.get_goal(goal_id)
        if goal is None:
            raise NotFound("Goal not found")
        if goal.user_id != owner_id:
            raise AccessDenied("You do not own this goal")
        return goal

    def create(
        self,
        board_id: str,
        owner_id: str,
        title: Optional[str],
        description: Optional[str] = None,
    ) -> GoalRecord:
        title, description = clean_goal_input(title, description)
        self.boards.get_owned(board_id, owner_id)
        goal = self.db.create_goal(board_id, owner_id, title, description)
        logger.info("Added goal %s to board %s", goal.id, board_id)
        return goal

    def toggle_completion(self, goal_id: str, owner_id: str) -> GoalRecord:
        goal = self._get_owned(goal_id, owner_id)
        now_complete = not goal.is_completed
        updated = self.db.update_goal_completion(
            goal_id, now_complete, time.time() if now_complete else None
        )
        if updated is None:
            raise NotFound("Goal not found")
        return updated

    def delete(self, goal_id: str, owner_id: str, *, confirmed: bool) -> GoalRecord:
        if not confirmed:
            raise ValidationError("Deleting a goal must be confirmed.")
        goal = self._get_owned(goal_id, owner_id)
        if not self.db.delete_goal(goal_id):
            raise NotFound("Goal not found")
        logger.info("Deleted goal %s", goal_id)
        return goal
