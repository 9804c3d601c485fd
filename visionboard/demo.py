"""
Demo mode: the board/goal workflow for anonymous visitors.

State lives in the visitor's own profile of the LocalStore and never reaches
the hosted backend. Picked images are kept in a process-local BlobCache and
referenced as `blob:<id>`, so references survive in the store while their
content only lasts as long as the process.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional

from visionboard.boards import SLOT_COUNT
from visionboard.errors import NotFound, ValidationError
from visionboard.goals import GoalStats, aggregate, clean_goal_input
from visionboard.local_store import LocalStore

logger = logging.getLogger(__name__)

KEY_NAME = "demo_vb_name"
KEY_IMAGES = "demo_vb_images"
KEY_GOALS = "demo_goals"

BLOB_PREFIX = "blob:"
DEMO_BOARD_NAME = "My 2025 Vision Board"
DEMO_IMAGES = [f"/demo/vb{i}.jpg" for i in range(1, SLOT_COUNT + 1)]


@dataclass
class DemoGoal:
    id: str
    title: str
    description: Optional[str]
    is_completed: bool
    created_at: str
    completed_at: Optional[str] = None


@dataclass
class DemoBoard:
    name: str
    images: list[Optional[str]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def seed_goals() -> list[DemoGoal]:
    now = _now()

    def days_ago(days: int) -> str:
        return (now - timedelta(days=days)).isoformat()

    return [
        DemoGoal(
            id="d1",
            title="Ship Visionboard v1.0",
            description="MVP shipped, polish UI",
            is_completed=True,
            created_at=days_ago(30),
            completed_at=now.isoformat(),
        ),
        DemoGoal(
            id="d2",
            title="Hit 3/5 weekly workouts",
            description="Strength + mobility",
            is_completed=False,
            created_at=days_ago(12),
        ),
        DemoGoal(
            id="d3",
            title="Read 12 books in 2025",
            description="6/12 done",
            is_completed=False,
            created_at=days_ago(50),
        ),
        DemoGoal(
            id="d4",
            title="Visit Paris",
            description="Plan spring 2026",
            is_completed=False,
            created_at=days_ago(7),
        ),
    ]


class BlobCache:
    """Bounded in-process store for picked image content."""

    def __init__(self, max_items: int = 512):
        self.max_items = max_items
        self._items: OrderedDict[str, tuple[bytes, str]] = OrderedDict()
        self._lock = Lock()

    def put(self, content: bytes, content_type: str) -> str:
        ref = f"{BLOB_PREFIX}{uuid.uuid4().hex}"
        with self._lock:
            self._items[ref] = (bytes(content), content_type)
            while len(self._items) > self.max_items:
                self._items.popitem(last=False)
        return ref

    def get(self, ref: str) -> Optional[tuple[bytes, str]]:
        with self._lock:
            return self._items.get(ref)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


def new_profile_id() -> str:
    return uuid.uuid4().hex


class DemoEngine:
    def __init__(self, store: LocalStore, blobs: BlobCache):
        self.store = store
        self.blobs = blobs

    def _load_json(self, profile_id: str, key: str):
        raw = self.store.get_item(profile_id, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable %s for profile %s", key, profile_id)
            return None

    def _save_json(self, profile_id: str, key: str, value) -> None:
        self.store.set_item(profile_id, key, json.dumps(value))

    def board(self, profile_id: str) -> DemoBoard:
        name = self.store.get_item(profile_id, KEY_NAME)
        images = self._load_json(profile_id, KEY_IMAGES)
        if not isinstance(images, list) or len(images) != SLOT_COUNT:
            images = list(DEMO_IMAGES)
        else:
            images = [ref if isinstance(ref, str) else None for ref in images]
        return DemoBoard(name=DEMO_BOARD_NAME if name is None else name, images=images)

    def reset(self, profile_id: str) -> DemoBoard:
        """Forget the visitor's edits; the next read reseeds."""
        for key in (KEY_NAME, KEY_IMAGES, KEY_GOALS):
            self.store.remove_item(profile_id, key)
        return self.board(profile_id)

    def rename(self, profile_id: str, name: str) -> DemoBoard:
        self.store.set_item(profile_id, KEY_NAME, name or "")
        return self.board(profile_id)

    def pick_image(
        self, profile_id: str, position: int, content: bytes, content_type: str
    ) -> DemoBoard:
        if not 0 <= position < SLOT_COUNT:
            raise ValidationError(f"Slot position must be between 0 and {SLOT_COUNT - 1}.")
        if not content:
            raise ValidationError("Picked image is empty.")
        board = self.board(profile_id)
        board.images[position] = self.blobs.put(content, content_type)
        self._save_json(profile_id, KEY_IMAGES, board.images)
        return board

    def slot_contents(self, profile_id: str) -> list[Optional[bytes]]:
        """Content behind each slot; bundled or expired references yield None."""
        contents: list[Optional[bytes]] = []
        for ref in self.board(profile_id).images:
            blob = self.blobs.get(ref) if ref and ref.startswith(BLOB_PREFIX) else None
            contents.append(blob[0] if blob else None)
        return contents

    def goals(self, profile_id: str) -> list[DemoGoal]:
        raw = self._load_json(profile_id, KEY_GOALS)
        if not isinstance(raw, list):
            return seed_goals()
        try:
            return [DemoGoal(**item) for item in raw]
        except TypeError:
            logger.warning("Discarding malformed demo goals for profile %s", profile_id)
            return seed_goals()

    def _save_goals(self, profile_id: str, goals: list[DemoGoal]) -> None:
        self._save_json(profile_id, KEY_GOALS, [asdict(g) for g in goals])

    def add_goal(
        self, profile_id: str, title: Optional[str], description: Optional[str] = None
    ) -> DemoGoal:
        title, description = clean_goal_input(title, description)
        goal = DemoGoal(
            id=f"demo-{uuid.uuid4().hex[:12]}",
            title=title,
            description=description,
            is_completed=False,
            created_at=_now().isoformat(),
        )
        self._save_goals(profile_id, [goal] + self.goals(profile_id))
        return goal

    def toggle_goal(self, profile_id: str, goal_id: str) -> DemoGoal:
        goals = self.goals(profile_id)
        for goal in goals:
            if goal.id == goal_id:
                goal.is_completed = not goal.is_completed
                goal.completed_at = _now().isoformat() if goal.is_completed else None
                self._save_goals(profile_id, goals)
                return goal
        raise NotFound("Goal not found")

    def delete_goal(self, profile_id: str, goal_id: str, *, confirmed: bool) -> None:
        if not confirmed:
            raise ValidationError("Deleting a goal must be confirmed.")
        goals = self.goals(profile_id)
        remaining = [g for g in goals if g.id != goal_id]
        if len(remaining) == len(goals):
            raise NotFound("Goal not found")
        self._save_goals(profile_id, remaining)

    def stats(self, profile_id: str) -> GoalStats:
        return aggregate(self.goals(profile_id))
