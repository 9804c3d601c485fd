"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from threading import RLock
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import Boolean, Column, Float, Integer, String, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from visionboard.errors import BackendError


class DbClient(Protocol):
    """Interface for relational access to boards, image slots and goals."""

    def create_board(self, user_id: str, name: str) -> "BoardRecord":
        ...

    def get_board(self, board_id: str) -> Optional["BoardRecord"]:
        ...

    def list_boards(self, user_id: str) -> list["BoardRecord"]:
        ...

    def update_board_name(self, board_id: str, name: str) -> None:
        ...

    def list_board_images(self, board_id: str) -> list["BoardImageRecord"]:
        ...

    def insert_board_image(
        self, board_id: str, file_path: str, position_index: int
    ) -> "BoardImageRecord":
        ...

    def delete_board_images(self, board_id: str) -> int:
        ...

    def list_image_paths(self) -> set[str]:
        ...

    def create_goal(
        self,
        board_id: str,
        user_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> "GoalRecord":
        ...

    def get_goal(self, goal_id: str) -> Optional["GoalRecord"]:
        ...

    def list_goals(self, board_id: str, user_id: str) -> list["GoalRecord"]:
        ...

    def update_goal_completion(
        self, goal_id: str, is_completed: bool, completed_at: Optional[float]
    ) -> Optional["GoalRecord"]:
        ...

    def delete_goal(self, goal_id: str) -> bool:
        ...


@dataclass
class BoardRecord:
    id: str
    user_id: str
    name: str
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class BoardImageRecord:
    id: str
    board_id: str
    file_path: str
    position_index: int
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class GoalRecord:
    id: str
    board_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    is_completed: bool = False
    completed_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)


def _newest_first(records: list) -> list:
    # Reverse first so that, on equal timestamps, later inserts still lead.
    return sorted(reversed(records), key=lambda r: r.created_at, reverse=True)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self._lock = RLock()
        self.boards: Dict[str, BoardRecord] = {}
        self.images: Dict[str, BoardImageRecord] = {}
        self.goals: Dict[str, GoalRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.boards.clear()
            self.images.clear()
            self.goals.clear()

    def create_board(self, user_id: str, name: str) -> BoardRecord:
        record = BoardRecord(id=uuid.uuid4().hex, user_id=user_id, name=name)
        with self._lock:
            self.boards[record.id] = record
        return BoardRecord(**record.as_dict())

    def get_board(self, board_id: str) -> Optional[BoardRecord]:
        with self._lock:
            record = self.boards.get(board_id)
            return BoardRecord(**record.as_dict()) if record else None

    def list_boards(self, user_id: str) -> list[BoardRecord]:
        with self._lock:
            owned = [
                BoardRecord(**b.as_dict())
                for b in self.boards.values()
                if b.user_id == user_id
            ]
        return _newest_first(owned)

    def update_board_name(self, board_id: str, name: str) -> None:
        with self._lock:
            record = self.boards.get(board_id)
            if record:
                record.name = name

    def list_board_images(self, board_id: str) -> list[BoardImageRecord]:
        with self._lock:
            rows = [
                BoardImageRecord(**img.as_dict())
                for img in self.images.values()
                if img.board_id == board_id
            ]
        return sorted(rows, key=lambda r: r.created_at)

    def insert_board_image(
        self, board_id: str, file_path: str, position_index: int
    ) -> BoardImageRecord:
        record = BoardImageRecord(
            id=uuid.uuid4().hex,
            board_id=board_id,
            file_path=file_path,
            position_index=position_index,
        )
        with self._lock:
            self.images[record.id] = record
        return BoardImageRecord(**record.as_dict())

    def delete_board_images(self, board_id: str) -> int:
        with self._lock:
            doomed = [k for k, v in self.images.items() if v.board_id == board_id]
            for key in doomed:
                del self.images[key]
        return len(doomed)

    def list_image_paths(self) -> set[str]:
        with self._lock:
            return {img.file_path for img in self.images.values()}

    def create_goal(
        self,
        board_id: str,
        user_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> GoalRecord:
        record = GoalRecord(
            id=uuid.uuid4().hex,
            board_id=board_id,
            user_id=user_id,
            title=title,
            description=description,
        )
        with self._lock:
            self.goals[record.id] = record
        return GoalRecord(**record.as_dict())

    def get_goal(self, goal_id: str) -> Optional[GoalRecord]:
        with self._lock:
            record = self.goals.get(goal_id)
            return GoalRecord(**record.as_dict()) if record else None

    def list_goals(self, board_id: str, user_id: str) -> list[GoalRecord]:
        with self._lock:
            rows = [
                GoalRecord(**g.as_dict())
                for g in self.goals.values()
                if g.board_id == board_id and g.user_id == user_id
            ]
        return _newest_first(rows)

    def update_goal_completion(
        self, goal_id: str, is_completed: bool, completed_at: Optional[float]
    ) -> Optional[GoalRecord]:
        with self._lock:
            record = self.goals.get(goal_id)
            if not record:
                return None
            record.is_completed = is_completed
            record.completed_at = completed_at
            return GoalRecord(**record.as_dict())

    def delete_goal(self, goal_id: str) -> bool:
        with self._lock:
            return self.goals.pop(goal_id, None) is not None


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., the
    hosted Postgres instance, or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise BackendError(f"Database request failed: {exc}") from exc

    @staticmethod
    def _to_board(row: "BoardRow") -> BoardRecord:
        return BoardRecord(
            id=row.id, user_id=row.user_id, name=row.name, created_at=row.created_at
        )

    @staticmethod
    def _to_image(row: "BoardImageRow") -> BoardImageRecord:
        return BoardImageRecord(
            id=row.id,
            board_id=row.board_id,
            file_path=row.file_path,
            position_index=row.position_index,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_goal(row: "GoalRow") -> GoalRecord:
        return GoalRecord(
            id=row.id,
            board_id=row.board_id,
            user_id=row.user_id,
            title=row.title,
            description=row.description,
            is_completed=bool(row.is_completed),
            completed_at=row.completed_at,
            created_at=row.created_at,
        )

    def create_board(self, user_id: str, name: str) -> BoardRecord:
        with self._session() as session:
            row = BoardRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                name=name,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_board(row)

    def get_board(self, board_id: str) -> Optional[BoardRecord]:
        with self._session() as session:
            row = session.get(BoardRow, board_id)
            return self._to_board(row) if row else None

    def list_boards(self, user_id: str) -> list[BoardRecord]:
        with self._session() as session:
            stmt = (
                select(BoardRow)
                .where(BoardRow.user_id == user_id)
                .order_by(BoardRow.created_at.desc())
            )
            return [self._to_board(r) for r in session.execute(stmt).scalars()]

    def update_board_name(self, board_id: str, name: str) -> None:
        with self._session() as session:
            row = session.get(BoardRow, board_id)
            if not row:
                return
            row.name = name
            session.commit()

    def list_board_images(self, board_id: str) -> list[BoardImageRecord]:
        with self._session() as session:
            stmt = (
                select(BoardImageRow)
                .where(BoardImageRow.board_id == board_id)
                .order_by(BoardImageRow.created_at.asc())
            )
            return [self._to_image(r) for r in session.execute(stmt).scalars()]

    def insert_board_image(
        self, board_id: str, file_path: str, position_index: int
    ) -> BoardImageRecord:
        with self._session() as session:
            row = BoardImageRow(
                id=uuid.uuid4().hex,
                board_id=board_id,
                file_path=file_path,
                position_index=position_index,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_image(row)

    def delete_board_images(self, board_id: str) -> int:
        with self._session() as session:
            result = session.execute(
                delete(BoardImageRow).where(BoardImageRow.board_id == board_id)
            )
            session.commit()
            return result.rowcount or 0

    def list_image_paths(self) -> set[str]:
        with self._session() as session:
            return set(session.execute(select(BoardImageRow.file_path)).scalars())

    def create_goal(
        self,
        board_id: str,
        user_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> GoalRecord:
        with self._session() as session:
            row = GoalRow(
                id=uuid.uuid4().hex,
                board_id=board_id,
                user_id=user_id,
                title=title,
                description=description,
                is_completed=False,
                completed_at=None,
                created_at=time.time(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_goal(row)

    def get_goal(self, goal_id: str) -> Optional[GoalRecord]:
        with self._session() as session:
            row = session.get(GoalRow, goal_id)
            return self._to_goal(row) if row else None

    def list_goals(self, board_id: str, user_id: str) -> list[GoalRecord]:
        with self._session() as session:
            stmt = (
                select(GoalRow)
                .where(GoalRow.board_id == board_id, GoalRow.user_id == user_id)
                .order_by(GoalRow.created_at.desc())
            )
            return [self._to_goal(r) for r in session.execute(stmt).scalars()]

    def update_goal_completion(
        self, goal_id: str, is_completed: bool, completed_at: Optional[float]
    ) -> Optional[GoalRecord]:
        with self._session() as session:
            row = session.get(GoalRow, goal_id)
            if not row:
                return None
            row.is_completed = is_completed
            row.completed_at = completed_at
            session.commit()
            session.refresh(row)
            return self._to_goal(row)

    def delete_goal(self, goal_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(GoalRow).where(GoalRow.id == goal_id))
            session.commit()
            return (result.rowcount or 0) > 0


Base = declarative_base()


class BoardRow(Base):
    __tablename__ = "vision_boards"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class BoardImageRow(Base):
    __tablename__ = "vision_board_images"

    id = Column(String, primary_key=True)
    board_id = Column(String, nullable=False, index=True)
    file_path = Column(String, nullable=False)
    position_index = Column(Integer, nullable=False)
    created_at = Column(Float, nullable=False)


class GoalRow(Base):
    __tablename__ = "goals"

    id = Column(String, primary_key=True)
    board_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
