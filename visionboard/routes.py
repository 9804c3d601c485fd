"""
HTTP routes for signed-in pages and the account API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from visionboard.auth import AuthClient, AuthSession, Identity
from visionboard.boards import (
    DEFAULT_IMAGE_CONTENT_TYPE,
    SLOT_COUNT,
    BoardStore,
    SlotImage,
    StoredImage,
    UploadedImage,
)
from visionboard.config import get_settings
from visionboard.db import BoardRecord, GoalRecord
from visionboard.dependencies import (
    get_access_token,
    get_auth_client,
    get_board_store,
    get_goal_store,
    get_identity,
    get_optional_identity,
)
from visionboard.errors import BackendError, ValidationError, VisionBoardError
from visionboard.export import EXPORT_FILENAME, render_board_png
from visionboard.goals import GoalStats, GoalStore, aggregate
from visionboard.schemas import (
    BoardPageResponse,
    BoardSummary,
    DashboardResponse,
    GoalCreateRequest,
    GoalOut,
    GoalsPageResponse,
    GoalStatsOut,
    IdentityOut,
    OAuthStartResponse,
    PageStatus,
    SaveBoardResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    SlotOut,
    StatusResponse,
)

logger = logging.getLogger(__name__)

pages = APIRouter()
router = APIRouter()


def _board_summary(board: BoardRecord) -> BoardSummary:
    return BoardSummary(id=board.id, name=board.name, created_at=board.created_at)


def _stats_out(stats: GoalStats) -> GoalStatsOut:
    return GoalStatsOut(
        total=stats.total,
        completed=stats.completed,
        pending=stats.pending,
        percentage=stats.percentage,
        display_percentage=stats.display_percentage,
    )


def _goal_out(goal: GoalRecord) -> GoalOut:
    return GoalOut(
        id=goal.id,
        board_id=goal.board_id,
        title=goal.title,
        description=goal.description,
        is_completed=goal.is_completed,
        completed_at=goal.completed_at,
        created_at=goal.created_at,
    )


def _goals_page(board: BoardRecord, goals: list[GoalRecord]) -> GoalsPageResponse:
    return GoalsPageResponse(
        board=_board_summary(board),
        goals=[_goal_out(g) for g in goals],
        stats=_stats_out(aggregate(goals)),
    )


def _refetched_goals_page(
    goals: GoalStore, boards: BoardStore, board_id: str, owner_id: str
) -> GoalsPageResponse:
    board = boards.get_owned(board_id, owner_id)
    return _goals_page(board, goals.list_goals(board_id, owner_id))


def _set_session_cookie(request: Request, response: Response, session: AuthSession) -> None:
    response.set_cookie(
        get_settings().session_cookie_name,
        session.access_token,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )


def _page_status(identity: Optional[Identity]) -> PageStatus:
    if identity is None:
        return PageStatus(authenticated=False)
    return PageStatus(authenticated=True, redirect=get_settings().dashboard_path)


# Pages


@pages.get("/", response_model=PageStatus)
def home(identity: Optional[Identity] = Depends(get_optional_identity)):
    return _page_status(identity)


@pages.get("/login", response_model=PageStatus)
def login(identity: Optional[Identity] = Depends(get_optional_identity)):
    return _page_status(identity)


@pages.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
):
    return DashboardResponse(
        user=IdentityOut(id=identity.id, email=identity.email),
        boards=[_board_summary(b) for b in boards.list_boards(identity.id)],
    )


@pages.get("/visionboard", response_model=BoardPageResponse)
def visionboard_page(
    board_id: Optional[str] = Query(None, alias="id"),
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
    goals: GoalStore = Depends(get_goal_store),
):
    if not board_id:
        return BoardPageResponse(name="", is_new=True, slots=[None] * SLOT_COUNT)

    loaded = boards.load(board_id, identity.id)
    stats: Optional[GoalStatsOut] = None
    try:
        stats = _stats_out(goals.stats(board_id, identity.id))
    except VisionBoardError as exc:
        logger.warning("Goal stats unavailable for board %s: %s", board_id, exc.message)

    return BoardPageResponse(
        board_id=loaded.board.id,
        name=loaded.board.name,
        is_new=False,
        slots=[
            SlotOut(position=s.position, path=s.path, url=s.url) if s else None
            for s in loaded.slots
        ],
        goal_stats=stats,
    )


@pages.get("/goals", response_model=GoalsPageResponse)
def goals_page(
    board_id: str = Query(..., alias="boardId"),
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
    goals: GoalStore = Depends(get_goal_store),
):
    board = boards.get_owned(board_id, identity.id)
    try:
        items = goals.list_goals(board_id, identity.id)
    except BackendError as exc:
        logger.warning("Continuing without goals for board %s: %s", board_id, exc.message)
        items = []
    return _goals_page(board, items)


@pages.get("/auth/callback", name="auth_callback")
def auth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    auth: AuthClient = Depends(get_auth_client),
):
    settings = get_settings()
    response = RedirectResponse(settings.dashboard_path, status_code=status.HTTP_303_SEE_OTHER)
    if code:
        verifier = request.cookies.get(settings.oauth_verifier_cookie_name)
        try:
            session = auth.exchange_code_for_session(code, verifier)
            _set_session_cookie(request, response, session)
        except VisionBoardError as exc:
            # Not every flow needs an exchange; carry on to the dashboard.
            logger.info("Code exchange skipped: %s", exc.message)
    response.delete_cookie(settings.oauth_verifier_cookie_name)
    return response


# Auth API


@router.post("/auth/signup", response_model=SignUpResponse)
def sign_up(
    payload: SignUpRequest,
    request: Request,
    response: Response,
    auth: AuthClient = Depends(get_auth_client),
):
    if payload.password_confirm is not None and payload.password_confirm != payload.password:
        raise ValidationError("Passwords do not match.")
    session = auth.sign_up(
        payload.email,
        payload.password,
        email_redirect_to=str(request.url_for("auth_callback")),
    )
    if session is None:
        return SignUpResponse(
            status="confirmation_required",
            message="Check your inbox to confirm your email. Once confirmed, you can sign in.",
        )
    _set_session_cookie(request, response, session)
    return SignUpResponse(
        status="signed_in",
        message="Account created.",
        redirect=get_settings().dashboard_path,
    )


@router.post("/auth/signin", response_model=SessionResponse)
def sign_in(
    payload: SignInRequest,
    request: Request,
    response: Response,
    auth: AuthClient = Depends(get_auth_client),
):
    session = auth.sign_in_with_password(payload.email, payload.password)
    _set_session_cookie(request, response, session)
    return SessionResponse(
        user=IdentityOut(id=session.user.id, email=session.user.email),
        access_token=session.access_token,
        redirect=get_settings().dashboard_path,
    )


@router.get("/auth/oauth/{provider}", response_model=OAuthStartResponse)
def oauth_start(
    provider: str,
    request: Request,
    response: Response,
    auth: AuthClient = Depends(get_auth_client),
):
    start = auth.sign_in_with_oauth(provider, str(request.url_for("auth_callback")))
    response.set_cookie(
        get_settings().oauth_verifier_cookie_name,
        start.code_verifier,
        httponly=True,
        samesite="lax",
        max_age=600,
    )
    return OAuthStartResponse(url=start.url)


@router.post("/auth/signout", response_model=StatusResponse)
def sign_out(
    response: Response,
    token: Optional[str] = Depends(get_access_token),
    auth: AuthClient = Depends(get_auth_client),
):
    if token:
        auth.sign_out(token)
    response.delete_cookie(get_settings().session_cookie_name)
    return StatusResponse(status="ok")


# Boards API


@router.post("/boards", response_model=BoardSummary, status_code=201)
def create_board(
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
):
    return _board_summary(boards.create_untitled(identity.id))


async def _read_grid_form(request: Request) -> tuple[str, Optional[str], list[Optional[SlotImage]]]:
    """
    Multipart form: `name`, optional `board_id`, and `slot_0`..`slot_11`.
    Each slot is either an uploaded file or the storage path of an image the
    board already holds.
    """
    form = await request.form()
    name = form.get("name")
    board_id = form.get("board_id") or None
    images: list[Optional[SlotImage]] = []
    for position in range(SLOT_COUNT):
        value = form.get(f"slot_{position}")
        if value is None or value == "":
            images.append(None)
        elif isinstance(value, str):
            images.append(StoredImage(path=value))
        else:
            content = await value.read()
            images.append(
                UploadedImage(
                    content=content,
                    content_type=value.content_type or DEFAULT_IMAGE_CONTENT_TYPE,
                )
                if content
                else None
            )
    return (
        name if isinstance(name, str) else "",
        board_id if isinstance(board_id, str) else None,
        images,
    )


def _png_download(png: bytes) -> Response:
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/boards/save", response_model=SaveBoardResponse)
async def save_board(
    request: Request,
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
):
    name, board_id, images = await _read_grid_form(request)
    result = boards.save(identity.id, name, images, board_id=board_id)
    return SaveBoardResponse(
        board_id=result.board_id,
        created=result.created,
        message="Vision board saved!" if result.created else "Vision board updated!",
        redirect=f"/visionboard?id={result.board_id}" if result.created else None,
    )


@router.get("/boards/{board_id}/export")
def export_board(
    board_id: str,
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
):
    loaded = boards.load(board_id, identity.id)
    png = render_board_png(
        loaded.board.name,
        boards.fetch_slot_contents(loaded),
        require_full_grid=get_settings().require_full_grid,
    )
    return _png_download(png)


@router.post("/boards/export")
async def export_grid(
    request: Request,
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
):
    """Export the grid as currently picked, saved or not (same form as save)."""
    name, _, images = await _read_grid_form(request)
    require_full_grid = get_settings().require_full_grid
    png = render_board_png(
        name,
        boards.grid_contents(identity.id, images, require_full_grid=require_full_grid),
        require_full_grid=require_full_grid,
    )
    return _png_download(png)


# Goals API


@router.post(
    "/boards/{board_id}/goals", response_model=GoalsPageResponse, status_code=201
)
def create_goal(
    board_id: str,
    payload: GoalCreateRequest,
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
    goals: GoalStore = Depends(get_goal_store),
):
    goals.create(board_id, identity.id, payload.title, payload.description)
    return _refetched_goals_page(goals, boards, board_id, identity.id)


@router.post("/goals/{goal_id}/toggle", response_model=GoalsPageResponse)
def toggle_goal(
    goal_id: str,
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
    goals: GoalStore = Depends(get_goal_store),
):
    goal = goals.toggle_completion(goal_id, identity.id)
    return _refetched_goals_page(goals, boards, goal.board_id, identity.id)


@router.delete("/goals/{goal_id}", response_model=GoalsPageResponse)
def delete_goal(
    goal_id: str,
    confirm: bool = Query(False, description="Must be true; deletion is irreversible"),
    identity: Identity = Depends(get_identity),
    boards: BoardStore = Depends(get_board_store),
    goals: GoalStore = Depends(get_goal_store),
):
    goal = goals.delete(goal_id, identity.id, confirmed=confirm)
    return _refetched_goals_page(goals, boards, goal.board_id, identity.id)
