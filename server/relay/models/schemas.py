"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VisitRecord(BaseModel):
    """One page visit captured by the browser extension."""

    model_config = ConfigDict(populate_by_name=True)

    domain: str = ""
    title: Optional[str] = None
    start_time: int = Field(default=0, alias="startTime", description="Epoch milliseconds")
    readable_time: Optional[str] = Field(default=None, alias="readableTime")
    active_time_minutes: int = Field(default=0, alias="activeTimeMinutes")


class BrowsingStats(BaseModel):
    """Time split by category, in milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    work_time: float = Field(default=0, alias="workTime")
    social_time: float = Field(default=0, alias="socialTime")
    other_time: float = Field(default=0, alias="otherTime")


class BrowsingDay(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str = ""
    all_visits: List[VisitRecord] = Field(default_factory=list, alias="allVisits")
    total_active_minutes: int = Field(default=0, alias="totalActiveMinutes")
    tab_sessions: int = Field(default=0, alias="tabSessions")
    stats: BrowsingStats = Field(default_factory=BrowsingStats)


class BrowsingData(BaseModel):
    """Browsing context the client may attach to the first question."""

    today: BrowsingDay = Field(default_factory=BrowsingDay)


class ChatRequest(BaseModel):
    """Incoming payload for a single completion request."""

    model_config = ConfigDict(populate_by_name=True)

    user_message: Optional[str] = Field(
        default=None, alias="userMessage", description="Text the assistant should answer"
    )
    browsing_data: Optional[BrowsingData] = Field(
        default=None, alias="browsingData", description="Optional browsing context for the question"
    )
    system_context: Optional[str] = Field(
        default=None, alias="systemContext", description="Extra instructions placed before the context"
    )


class ChatResponse(BaseModel):
    """Response returned once the assistant run completes."""

    output_text: str = Field(..., description="Latest assistant reply for the posted message")
