"""
Pydantic schemas for the vision board API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class PageStatus(BaseModel):
    authenticated: bool
    redirect: Optional[str] = None


class IdentityOut(BaseModel):
    id: str
    email: Optional[str] = None


class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=256)
    password_confirm: Optional[str] = Field(default=None, max_length=256)


class SignUpResponse(BaseModel):
    status: Literal["confirmation_required", "signed_in"]
    message: str
    redirect: Optional[str] = None


class SignInRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=256)


class SessionResponse(BaseModel):
    user: IdentityOut
    access_token: str
    redirect: str


class OAuthStartResponse(BaseModel):
    url: str


class StatusResponse(BaseModel):
    status: Literal["ok"]


class BoardSummary(BaseModel):
    id: str
    name: str
    created_at: datetime


class DashboardResponse(BaseModel):
    user: IdentityOut
    boards: list[BoardSummary]


class SlotOut(BaseModel):
    position: int
    path: str
    url: str


class GoalStatsOut(BaseModel):
    total: int
    completed: int
    pending: int
    percentage: float
    display_percentage: int


class BoardPageResponse(BaseModel):
    board_id: Optional[str] = None
    name: str
    is_new: bool
    slots: list[Optional[SlotOut]]
    goal_stats: Optional[GoalStatsOut] = None


class SaveBoardResponse(BaseModel):
    board_id: str
    created: bool
    message: str
    redirect: Optional[str] = None


class GoalCreateRequest(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)


class GoalOut(BaseModel):
    id: str
    board_id: str
    title: str
    description: Optional[str] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime


class GoalsPageResponse(BaseModel):
    board: BoardSummary
    goals: list[GoalOut]
    stats: GoalStatsOut


class DemoBoardResponse(BaseModel):
    name: str
    images: list[Optional[str]]


class DemoRenameRequest(BaseModel):
    name: str = Field(..., max_length=200)


class DemoGoalOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    is_completed: bool
    created_at: str
    completed_at: Optional[str] = None


class DemoGoalsResponse(BaseModel):
    goals: list[DemoGoalOut]
    stats: GoalStatsOut
