"""
Planos de assinatura e recursos liberados por plano.

Preço por faixa de aprendizes (mensal e anual, em libras). Os recursos de
IA só fazem parte do plano ``intelligence``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from sis_portal.core.errors import InvalidRequestError

TIER_CORE = "core"
TIER_CLARITY = "clarity"
TIER_INTELLIGENCE = "intelligence"
DEFAULT_TIER = TIER_CORE

FEATURE_AI_SUMMARY = "ai_summary"

BRANDING_LEVELS = ("none", "basic", "full", "white_label")


@dataclass(frozen=True)
class PricingBracket:
    min_learners: int
    max_learners: Optional[int]
    monthly_price: int
    yearly_price: int

    def contains(self, learner_count: int) -> bool:
        return learner_count >= self.min_learners and (
            self.max_learners is None or learner_count <= self.max_learners
        )

    @property
    def label(self) -> str:
        if self.max_learners is None:
            return f"{self.min_learners}+ learners"
        return f"{self.min_learners}-{self.max_learners} learners"

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "label": self.label}


@dataclass(frozen=True)
class TierFeatures:
    view_reports: bool
    custom_branding: str
    unlimited_users: bool
    ai_summary: bool
    ai_chat: bool
    ai_predictive_analytics: bool
    ai_custom_queries: bool
    additional_report_grants: bool
    export_reports: bool
    api_access: bool
    custom_roles: bool
    scheduled_reports: bool
    data_retention_years: int
    support_level: str


@dataclass(frozen=True)
class SubscriptionTier:
    name: str
    display_name: str
    description: str
    pricing_brackets: tuple[PricingBracket, ...]
    features: TierFeatures
    is_popular: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["pricing_brackets"] = [bracket.to_dict() for bracket in self.pricing_brackets]
        return payload


# Limites superiores das faixas; a última é aberta.
_BRACKET_LIMITS = (150, 200, 350, 500, 750, 1000, 1250, 1500, 2000, 3000, 5000, 7500, 10000, 12500, None)


def _brackets(monthly_prices: tuple[int, ...]) -> tuple[PricingBracket, ...]:
    brackets = []
    lower = 0
    for upper, monthly in zip(_BRACKET_LIMITS, monthly_prices):
        # Anual = 10 mensalidades
        brackets.append(PricingBracket(lower, upper, monthly, monthly * 10))
        lower = (upper or 0) + 1
    return tuple(brackets)


SUBSCRIPTION_TIERS: dict[str, SubscriptionTier] = {
    TIER_CORE: SubscriptionTier(
        name=TIER_CORE,
        display_name="Core",
        description="Essential reporting and analytics for small training providers",
        pricing_brackets=_brackets(
            (399, 499, 599, 749, 899, 1099, 1299, 1499, 1799, 2299, 3299, 4799, 6499, 7999, 9999)
        ),
        features=TierFeatures(
            view_reports=True,
            custom_branding="basic",
            unlimited_users=True,
            ai_summary=False,
            ai_chat=False,
            ai_predictive_analytics=False,
            ai_custom_queries=False,
            additional_report_grants=False,
            export_reports=False,
            api_access=False,
            custom_roles=False,
            scheduled_reports=False,
            data_retention_years=1,
            support_level="email",
        ),
    ),
    TIER_CLARITY: SubscriptionTier(
        name=TIER_CLARITY,
        display_name="Clarity",
        description="Advanced analytics and customization for growing providers",
        pricing_brackets=_brackets(
            (599, 699, 799, 999, 1199, 1449, 1699, 1949, 2399, 3199, 4699, 6899, 9499, 11999, 14999)
        ),
        features=TierFeatures(
            view_reports=True,
            custom_branding="full",
            unlimited_users=True,
            ai_summary=False,
            ai_chat=False,
            ai_predictive_analytics=False,
            ai_custom_queries=False,
            additional_report_grants=True,
            export_reports=True,
            api_access=False,
            custom_roles=False,
            scheduled_reports=True,
            data_retention_years=2,
            support_level="priority",
        ),
        is_popular=True,
    ),
    TIER_INTELLIGENCE: SubscriptionTier(
        name=TIER_INTELLIGENCE,
        display_name="Intelligence",
        description="Full AI-powered insights and predictive analytics",
        pricing_brackets=_brackets(
            (899, 999, 1199, 1499, 1799, 2199, 2599, 2999, 3699, 4999, 7499, 10999, 14999, 18999, 24999)
        ),
        features=TierFeatures(
            view_reports=True,
            custom_branding="white_label",
            unlimited_users=True,
            ai_summary=True,
            ai_chat=True,
            ai_predictive_analytics=True,
            ai_custom_queries=True,
            additional_report_grants=True,
            export_reports=True,
            api_access=True,
            custom_roles=True,
            scheduled_reports=True,
            data_retention_years=999,
            support_level="dedicated",
        ),
    ),
}


def normalize_tier(value: Optional[str]) -> str:
    """Nome canônico do plano; valores desconhecidos levantam ``ValueError``."""
    normalized = (value or DEFAULT_TIER).strip().lower()
    if normalized not in SUBSCRIPTION_TIERS:
        raise ValueError(f"invalid subscription tier: {normalized}")
    return normalized


def get_tier(name: Optional[str]) -> SubscriptionTier:
    try:
        return SUBSCRIPTION_TIERS[normalize_tier(name)]
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from exc


def has_feature(tier_name: Optional[str], feature: str) -> bool:
    """
    Verifica se o plano libera o recurso.

    Os níveis de branding aceitam ``custom_branding_<nível>`` e são
    cumulativos (``full`` inclui ``basic``). Plano desconhecido não libera nada.
    """
    tier = SUBSCRIPTION_TIERS.get((tier_name or DEFAULT_TIER).strip().lower())
    if tier is None:
        return False
    features = tier.features
    if feature.startswith("custom_branding_"):
        wanted = feature[len("custom_branding_"):]
        if wanted not in BRANDING_LEVELS:
            return False
        return BRANDING_LEVELS.index(features.custom_branding) >= BRANDING_LEVELS.index(wanted)
    value = getattr(features, feature, None)
    return value is True


def get_pricing_bracket(tier_name: str, learner_count: int) -> Optional[PricingBracket]:
    for bracket in get_tier(tier_name).pricing_brackets:
        if bracket.contains(learner_count):
            return bracket
    return None
