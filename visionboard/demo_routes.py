"""
HTTP routes for demo mode. Anonymous visitors are told apart by a profile
cookie; nothing here touches the hosted backend.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile

from visionboard.boards import DEFAULT_IMAGE_CONTENT_TYPE
from visionboard.config import get_settings
from visionboard.demo import BLOB_PREFIX, DemoBoard, DemoEngine, DemoGoal, new_profile_id
from visionboard.dependencies import get_demo_engine
from visionboard.errors import NotFound
from visionboard.export import EXPORT_FILENAME, render_board_png
from visionboard.schemas import (
    DemoBoardResponse,
    DemoGoalOut,
    DemoGoalsResponse,
    DemoRenameRequest,
    GoalCreateRequest,
    GoalStatsOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/demo")


def get_demo_profile(request: Request, response: Response) -> str:
    cookie_name = get_settings().demo_cookie_name
    profile_id = request.cookies.get(cookie_name)
    if not profile_id:
        profile_id = new_profile_id()
        response.set_cookie(cookie_name, profile_id, httponly=True, samesite="lax")
        logger.info("Issued demo profile %s", profile_id)
    return profile_id


def _image_url(request: Request, ref: Optional[str]) -> Optional[str]:
    if ref and ref.startswith(BLOB_PREFIX):
        return str(request.url_for("demo_blob", blob_id=ref[len(BLOB_PREFIX):]))
    return ref


def _board_out(request: Request, board: DemoBoard) -> DemoBoardResponse:
    return DemoBoardResponse(
        name=board.name, images=[_image_url(request, ref) for ref in board.images]
    )


def _goal_out(goal: DemoGoal) -> DemoGoalOut:
    return DemoGoalOut(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        is_completed=goal.is_completed,
        created_at=goal.created_at,
        completed_at=goal.completed_at,
    )


def _goals_out(engine: DemoEngine, profile_id: str) -> DemoGoalsResponse:
    goals = engine.goals(profile_id)
    stats = engine.stats(profile_id)
    return DemoGoalsResponse(
        goals=[_goal_out(g) for g in goals],
        stats=GoalStatsOut(
            total=stats.total,
            completed=stats.completed,
            pending=stats.pending,
            percentage=stats.percentage,
            display_percentage=stats.display_percentage,
        ),
    )


@router.get("/board", response_model=DemoBoardResponse)
def demo_board(
    request: Request,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    return _board_out(request, engine.board(profile_id))


@router.put("/board/name", response_model=DemoBoardResponse)
def demo_rename(
    payload: DemoRenameRequest,
    request: Request,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    return _board_out(request, engine.rename(profile_id, payload.name))


@router.post("/reset", response_model=DemoBoardResponse)
def demo_reset(
    request: Request,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    return _board_out(request, engine.reset(profile_id))


@router.post("/board/slots/{position}", response_model=DemoBoardResponse)
async def demo_pick_image(
    position: int,
    request: Request,
    file: UploadFile = File(...),
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    content = await file.read()
    board = engine.pick_image(
        profile_id,
        position,
        content,
        file.content_type or DEFAULT_IMAGE_CONTENT_TYPE,
    )
    return _board_out(request, board)


@router.get("/blobs/{blob_id}", name="demo_blob")
def demo_blob(
    blob_id: str,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    ref = f"{BLOB_PREFIX}{blob_id}"
    # Only serve content referenced by this visitor's own board.
    if ref not in engine.board(profile_id).images:
        raise NotFound("Image not found")
    blob = engine.blobs.get(ref)
    if blob is None:
        raise NotFound("Image is no longer available")
    content, content_type = blob
    return Response(content=content, media_type=content_type)


@router.get("/export")
def demo_export(
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    board = engine.board(profile_id)
    png = render_board_png(
        board.name, engine.slot_contents(profile_id), require_full_grid=False
    )
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/goals", response_model=DemoGoalsResponse)
def demo_goals(
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    return _goals_out(engine, profile_id)


@router.post("/goals", response_model=DemoGoalsResponse, status_code=201)
def demo_add_goal(
    payload: GoalCreateRequest,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    engine.add_goal(profile_id, payload.title, payload.description)
    return _goals_out(engine, profile_id)


@router.post("/goals/{goal_id}/toggle", response_model=DemoGoalsResponse)
def demo_toggle_goal(
    goal_id: str,
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    engine.toggle_goal(profile_id, goal_id)
    return _goals_out(engine, profile_id)


@router.delete("/goals/{goal_id}", response_model=DemoGoalsResponse)
def demo_delete_goal(
    goal_id: str,
    confirm: bool = Query(False),
    profile_id: str = Depends(get_demo_profile),
    engine: DemoEngine = Depends(get_demo_engine),
):
    engine.delete_goal(profile_id, goal_id, confirmed=confirm)
    return _goals_out(engine, profile_id)
