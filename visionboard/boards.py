"""
Board persistence: the 12-slot grid, signed-URL resolution and save semantics.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from visionboard.db import BoardImageRecord, BoardRecord, DbClient
from visionboard.errors import (
    AccessDenied,
    BackendError,
    NotFound,
    PartialFailure,
    ValidationError,
    VisionBoardError,
)
from visionboard.storage import StorageClient

logger = logging.getLogger(__name__)

GRID_ROWS = 3
GRID_COLS = 4
SLOT_COUNT = GRID_ROWS * GRID_COLS
UNTITLED_BOARD_NAME = "Untitled Vision Board"
UPLOAD_CACHE_CONTROL = "3600"
DEFAULT_IMAGE_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class UploadedImage:
    """Fresh image content picked by the user."""

    content: bytes
    content_type: str = DEFAULT_IMAGE_CONTENT_TYPE


@dataclass(frozen=True)
class StoredImage:
    """An object the owner already stored, kept in place on re-save."""

    path: str


SlotImage = Union[UploadedImage, StoredImage]


@dataclass
class BoardSlot:
    position: int
    path: str
    url: str


@dataclass
class LoadedBoard:
    board: BoardRecord
    slots: list[Optional[BoardSlot]] = field(
        default_factory=lambda: [None] * SLOT_COUNT
    )

    @property
    def image_urls(self) -> list[Optional[str]]:
        return [slot.url if slot else None for slot in self.slots]

    @property
    def filled_count(self) -> int:
        return sum(1 for slot in self.slots if slot)


@dataclass
class SaveResult:
    board_id: str
    created: bool
    paths: list[str]


def owner_prefix(user_id: str) -> str:
    return f"boards/{user_id}/"


def board_image_path(user_id: str, board_id: str, position: int, now_ms: int) -> str:
    return f"{owner_prefix(user_id)}{board_id}/image_{position}_{now_ms}.png"


def check_grid(owner_id: str, images: Sequence[Optional[SlotImage]]) -> None:
    """Slot count and ownership of kept images, without touching the backend."""
    if len(images) != SLOT_COUNT:
        raise ValidationError(
            f"A board has exactly {SLOT_COUNT} slots, got {len(images)}."
        )
    prefix = owner_prefix(owner_id)
    for image in images:
        if not isinstance(image, StoredImage):
            continue
        segments = image.path.split("/")
        if not image.path.startswith(prefix) or any(s in (".", "..") for s in segments):
            raise AccessDenied("Stored image does not belong to this account.")


def validate_board_save(
    owner_id: str,
    name: str,
    images: Sequence[Optional[SlotImage]],
    *,
    require_full_grid: bool,
) -> str:
    """
    Check a save request without touching the backend. Returns the trimmed name.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Please enter a name for your vision board.")
    check_grid(owner_id, images)
    if require_full_grid and any(image is None for image in images):
        raise ValidationError(f"Please fill all {SLOT_COUNT} squares before saving.")
    return trimmed


class BoardStore:
    def __init__(
        self,
        db: DbClient,
        storage: StorageClient,
        *,
        signed_url_ttl_seconds: int = 3600,
        require_full_grid: bool = True,
    ):
        self.db = db
        self.storage = storage
        self.signed_url_ttl_seconds = signed_url_ttl_seconds
        self.require_full_grid = require_full_grid

    def list_boards(self, owner_id: str) -> list[BoardRecord]:
        return self.db.list_boards(owner_id)

    def create_untitled(self, owner_id: str) -> BoardRecord:
        board = self.db.create_board(owner_id, UNTITLED_BOARD_NAME)
        logger.info("Created untitled board %s for %s", board.id, owner_id)
        return board

    def get_owned(self, board_id: str, owner_id: str) -> BoardRecord:
        board = self.db.get_board(board_id)
        if board is None:
            raise NotFound("Board not found")
        if board.user_id != owner_id:
            raise AccessDenied("You do not own this board")
        return board

    def load(self, board_id: str, owner_id: str) -> LoadedBoard:
        board = self.get_owned(board_id, owner_id)
        latest: dict[int, BoardImageRecord] = {}
        for row in self.db.list_board_images(board_id):
            if not 0 <= row.position_index < SLOT_COUNT:
                logger.warning(
                    "Ignoring image %s at position %s on board %s",
                    row.id,
                    row.position_index,
                    board_id,
                )
                continue
            # Rows come oldest first; the last write for a position wins.
            latest[row.position_index] = row

        loaded = LoadedBoard(board=board)
        for position, row in latest.items():
            try:
                url = self.storage.presign_get(
                    row.file_path, expires_in=self.signed_url_ttl_seconds
                )
            except VisionBoardError as exc:
                logger.warning(
                    "Could not sign %s for board %s: %s",
                    row.file_path,
                    board_id,
                    exc.message,
                )
                continue
            loaded.slots[position] = BoardSlot(
                position=position, path=row.file_path, url=url
            )
        return loaded

    def fetch_slot_contents(self, loaded: LoadedBoard) -> list[Optional[bytes]]:
        """
        Download the stored bytes behind each filled slot.

        A missing object leaves its slot empty; any other storage failure
        raises BackendError.
        """
        contents: list[Optional[bytes]] = []
        for slot in loaded.slots:
            if slot is None:
                contents.append(None)
                continue
            try:
                contents.append(self.storage.get_bytes(slot.path))
            except NotFound:
                logger.warning(
                    "Slot %d of board %s points at missing object %s",
                    slot.position,
                    loaded.board.id,
                    slot.path,
                )
                contents.append(None)
        return contents

    def grid_contents(
        self,
        owner_id: str,
        images: Sequence[Optional[SlotImage]],
        *,
        require_full_grid: bool,
    ) -> list[Optional[bytes]]:
        """Bytes for an unsaved grid: fresh uploads as-is, kept images read back."""
        check_grid(owner_id, images)
        if require_full_grid and any(image is None for image in images):
            raise ValidationError(f"Please fill all {SLOT_COUNT} squares before exporting.")
        contents: list[Optional[bytes]] = []
        for image in images:
            if image is None:
                contents.append(None)
            elif isinstance(image, StoredImage):
                contents.append(self.storage.get_bytes(image.path))
            else:
                contents.append(image.content)
        return contents

    def save(
        self,
        owner_id: str,
        name: str,
        images: Sequence[Optional[SlotImage]],
        board_id: Optional[str] = None,
    ) -> SaveResult:
        """
        Create or update a board and replace its image slots.

        Validation happens before any backend call. Slots are written one at a
        time (upload, then row insert); a failure midway leaves the slots
        written so far in place and raises PartialFailure.
        """
        trimmed = validate_board_save(
            owner_id, name, images, require_full_grid=self.require_full_grid
        )

        existing = self.get_owned(board_id, owner_id) if board_id else None

        # Read kept objects up front so a missing one fails before any write.
        pending: list[tuple[int, bytes, str]] = []
        for position, image in enumerate(images):
            if image is None:
                continue
            if isinstance(image, StoredImage):
                pending.append(
                    (position, self.storage.get_bytes(image.path), DEFAULT_IMAGE_CONTENT_TYPE)
                )
            else:
                pending.append((position, image.content, image.content_type))

        if existing is None:
            board = self.db.create_board(owner_id, trimmed)
            logger.info("Created board %s for %s", board.id, owner_id)
        else:
            board = existing
            self.db.update_board_name(board.id, trimmed)
            removed = self.db.delete_board_images(board.id)
            logger.info("Replacing %d image rows on board %s", removed, board.id)

        saved: list[str] = []
        for position, content, content_type in pending:
            path = board_image_path(owner_id, board.id, position, int(time.time() * 1000))
            try:
                self.storage.upload_bytes(
                    path,
                    content,
                    content_type=content_type,
                    cache_control=UPLOAD_CACHE_CONTROL,
                )
            except BackendError as exc:
                logger.error("Upload failed for %s: %s", path, exc.message)
                raise PartialFailure(
                    f"Upload failed for slot {position}; "
                    f"{len(saved)} of {len(pending)} images saved."
                ) from exc
            try:
                self.db.insert_board_image(board.id, path, position)
            except BackendError as exc:
                logger.error("Stored %s but could not record it: %s", path, exc.message)
                raise PartialFailure(
                    f"Image for slot {position} was stored but not recorded; "
                    f"{len(saved)} of {len(pending)} images saved.",
                    orphaned_paths=[path],
                ) from exc
            saved.append(path)

        return SaveResult(board_id=board.id, created=existing is None, paths=saved)
