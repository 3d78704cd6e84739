"""
Schemas de IA (prompts e resumos) e de integração PowerBI.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class GenerateSummaryRequest(BaseModel):
    role_id: UUID
    priorities_data: Optional[Any] = None
    fetch_powerbi_data: bool = False

    @model_validator(mode="after")
    def _require_data_source(self) -> "GenerateSummaryRequest":
        if not self.fetch_powerbi_data and self.priorities_data is None:
            raise ValueError("Either priorities_data or fetch_powerbi_data must be provided")
        return self


class SummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    organization_id: Optional[UUID] = None
    role_id: Optional[UUID] = None
    summary_text: str
    summary_date: date
    tokens_used: Optional[int] = None
    created_at: Optional[datetime] = None


class AIPromptUpsert(BaseModel):
    role_id: UUID
    prompt_text: str = Field(..., min_length=1)
    report_id: Optional[UUID] = None
    selected_pages: List[str] = Field(default_factory=list)
    is_active: bool = True


class AIPromptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role_id: UUID
    prompt_type: str
    prompt_text: str
    report_id: Optional[UUID] = None
    selected_pages: Optional[List[str]] = None
    is_active: bool


class DailySummaryResult(BaseModel):
    user_id: UUID
    email: str
    status: str
    error: Optional[str] = None


class DailySummaryRunResponse(BaseModel):
    success: bool = True
    total_users: int
    results: List[DailySummaryResult]


class EmbedTokenRequest(BaseModel):
    report_id: str = Field(..., min_length=1, max_length=64)
    workspace_id: str = Field(..., min_length=1, max_length=64)


class EmbedTokenResponse(BaseModel):
    access_token: Optional[str] = None
    embed_url: Optional[str] = None
    expiration: Optional[str] = None
    token_id: Optional[str] = None
