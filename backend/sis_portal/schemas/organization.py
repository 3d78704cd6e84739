"""
Schemas de organizações (tenants).
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sis_portal.services.subscription_tiers import DEFAULT_TIER, normalize_tier

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+$")
GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _validate_subdomain(value: str) -> str:
    normalized = value.strip().lower()
    if not SUBDOMAIN_PATTERN.match(normalized):
        raise ValueError("Subdomain must contain only lowercase letters, numbers, and hyphens")
    return normalized


def _validate_workspace_id(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    if not GUID_PATTERN.match(value.strip()):
        raise ValueError("PowerBI Workspace ID must be a valid GUID")
    return value.strip()


def _validate_tier(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return normalize_tier(value)


class OrganizationCreate(BaseModel):
    """Payload de provisionamento de organização."""

    name: str = Field(..., min_length=2, max_length=255)
    subdomain: str = Field(..., min_length=1, max_length=63)
    powerbi_workspace_id: Optional[str] = None
    powerbi_workspace_name: Optional[str] = Field(default=None, max_length=255)
    billing_email: Optional[str] = Field(default=None, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    subscription_tier: str = DEFAULT_TIER
    logo_url: Optional[str] = Field(default=None, max_length=1024)

    @field_validator("subdomain")
    @classmethod
    def _check_subdomain(cls, value: str) -> str:
        return _validate_subdomain(value)

    @field_validator("powerbi_workspace_id")
    @classmethod
    def _check_workspace(cls, value: Optional[str]) -> Optional[str]:
        return _validate_workspace_id(value)

    @field_validator("subscription_tier")
    @classmethod
    def _check_tier(cls, value: str) -> str:
        return _validate_tier(value)


class OrganizationUpdate(BaseModel):
    """Atualização parcial de organização."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    subdomain: Optional[str] = Field(default=None, min_length=1, max_length=63)
    powerbi_workspace_id: Optional[str] = None
    powerbi_workspace_name: Optional[str] = Field(default=None, max_length=255)
    billing_email: Optional[str] = Field(default=None, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    subscription_tier: Optional[str] = None
    logo_url: Optional[str] = Field(default=None, max_length=1024)
    is_active: Optional[bool] = None

    @field_validator("subdomain")
    @classmethod
    def _check_subdomain(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _validate_subdomain(value)

    @field_validator("powerbi_workspace_id")
    @classmethod
    def _check_workspace(cls, value: Optional[str]) -> Optional[str]:
        return _validate_workspace_id(value)

    @field_validator("subscription_tier")
    @classmethod
    def _check_tier(cls, value: Optional[str]) -> Optional[str]:
        return _validate_tier(value)


class TenantOrganizationUpdate(BaseModel):
    """Campos que o tenant admin pode alterar na própria organização."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    billing_email: Optional[str] = Field(default=None, max_length=255)
    contact_name: Optional[str] = Field(default=None, max_length=255)
    logo_url: Optional[str] = Field(default=None, max_length=1024)


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    subdomain: str
    powerbi_workspace_id: Optional[str] = None
    powerbi_workspace_name: Optional[str] = None
    billing_email: Optional[str] = None
    contact_name: Optional[str] = None
    subscription_tier: str
    logo_url: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrganizationListItem(OrganizationResponse):
    user_count: int = 0


class OrganizationListResponse(BaseModel):
    total: int
    items: List[OrganizationListItem]


class PricingBracketResponse(BaseModel):
    min_learners: int
    max_learners: Optional[int] = None
    monthly_price: int
    yearly_price: int
    label: str


class SubscriptionTierResponse(BaseModel):
    name: str
    display_name: str
    description: str
    is_popular: bool = False
    features: Dict[str, Any]
    pricing_brackets: List[PricingBracketResponse]


class SubscriptionResponse(BaseModel):
    """Plano atual da organização e os planos disponíveis."""

    organization_id: UUID
    organization_name: str
    subscription_tier: str
    tier: SubscriptionTierResponse
    available_tiers: List[SubscriptionTierResponse]
    learner_count: Optional[int] = None
    pricing_bracket: Optional[PricingBracketResponse] = None
