"""Testes dos planos de assinatura e da liberação de recursos."""

import pytest

from sis_portal.core.errors import InvalidRequestError
from sis_portal.services.subscription_tiers import (
    FEATURE_AI_SUMMARY,
    get_pricing_bracket,
    get_tier,
    has_feature,
    normalize_tier,
)


def test_ai_summary_only_in_intelligence_tier():
    assert has_feature("intelligence", FEATURE_AI_SUMMARY) is True
    assert has_feature("clarity", FEATURE_AI_SUMMARY) is False
    assert has_feature("core", FEATURE_AI_SUMMARY) is False


def test_branding_levels_are_cumulative():
    assert has_feature("clarity", "custom_branding_basic") is True
    assert has_feature("clarity", "custom_branding_full") is True
    assert has_feature("clarity", "custom_branding_white_label") is False


def test_unknown_tier_grants_nothing():
    assert has_feature("enterprise", FEATURE_AI_SUMMARY) is False
    with pytest.raises(InvalidRequestError):
        get_tier("enterprise")


def test_normalize_tier_defaults_to_core():
    assert normalize_tier(None) == "core"
    assert normalize_tier(" Intelligence ") == "intelligence"
    with pytest.raises(ValueError):
        normalize_tier("pro")


def test_pricing_brackets_cover_all_learner_counts():
    assert get_pricing_bracket("core", 0).monthly_price == 399
    assert get_pricing_bracket("core", 150).max_learners == 150
    assert get_pricing_bracket("core", 151).min_learners == 151

    top = get_pricing_bracket("intelligence", 50000)
    assert top.max_learners is None
    assert top.yearly_price == 249990
    assert top.label == "12501+ learners"
