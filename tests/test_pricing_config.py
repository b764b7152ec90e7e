import dataclasses
import json
from decimal import Decimal

import pytest

from core.domain import InvalidRequestError
from use_cases.returns.domain.policies import (
    DEFAULT_PRICING_CONFIG,
    DEFAULT_PRICING_TIERS,
    PricingConfig,
    PricingTier,
    PricingTierPolicy,
    find_tier,
    load_pricing_config,
)


def test_default_config_is_valid():
    assert DEFAULT_PRICING_CONFIG.validate() == []


@pytest.mark.parametrize("value", ["0", "0.01", "49.99", "50", "99.99", "100", "999.99", "5000", "9999.99", "10000", "123456789"])
def test_exactly_one_tier_matches(value):
    matches = [t for t in DEFAULT_PRICING_TIERS if t.contains(Decimal(value))]

    assert len(matches) == 1
    assert find_tier(DEFAULT_PRICING_TIERS, Decimal(value)) is matches[0]


def test_tier_bounds_are_closed_below_open_above():
    assert find_tier(DEFAULT_PRICING_TIERS, Decimal("100")).name == "Basic+"
    assert find_tier(DEFAULT_PRICING_TIERS, Decimal("99.99")).name == "Express"


def test_tier_policy_explains_decision():
    policy = PricingTierPolicy()

    decision = policy.evaluate({"item_value": 1200})
    assert decision.is_approved
    assert decision.metadata["tier"] == "Enhanced"

    assert policy.evaluate({"item_value": -5}).is_denied


def test_gap_between_tiers_is_reported():
    tiers = (
        PricingTier("A", Decimal("0"), Decimal("50"), Decimal("1.00"), Decimal("0")),
        PricingTier("B", Decimal("60"), None, Decimal("2.00"), Decimal("1.00")),
    )
    errors = PricingConfig(tiers=tiers).validate()

    assert [e.code for e in errors] == ["gap_or_overlap"]


def test_cheaper_higher_tier_is_reported():
    tiers = (
        PricingTier("A", Decimal("0"), Decimal("50"), Decimal("3.00"), Decimal("0")),
        PricingTier("B", Decimal("50"), None, Decimal("2.00"), Decimal("0")),
    )
    errors = PricingConfig(tiers=tiers).validate()

    assert [e.code for e in errors] == ["non_monotonic"]


def test_bounded_top_tier_and_negative_rates_are_reported():
    tiers = (PricingTier("Only", Decimal("0"), Decimal("100"), Decimal("1.00"), Decimal("0")),)
    config = dataclasses.replace(
        DEFAULT_PRICING_CONFIG,
        tiers=tiers,
        per_mile_rate=Decimal("-0.10"),
        additional_item_factor=Decimal("1.5"),
    )
    fields = {e.field for e in config.validate()}

    assert fields == {"per_mile_rate", "additional_item_factor", "tiers[0].upper_bound"}


def test_from_dict_keeps_defaults_for_missing_keys():
    config = PricingConfig.from_dict({"version": "2024-06", "per_mile_rate": "0.40"})

    assert config.version == "2024-06"
    assert config.per_mile_rate == Decimal("0.40")
    assert config.per_minute_rate == DEFAULT_PRICING_CONFIG.per_minute_rate
    assert config.tiers == DEFAULT_PRICING_TIERS


def test_load_pricing_config_from_file(tmp_path):
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps({
        "version": "2024-07-flat",
        "gift_card_delivery_fee": 4.49,
        "tiers": [
            {"name": "Flat", "lower_bound": 0, "upper_bound": None,
             "base_company_fee": 1.99, "driver_size_bonus": 0.5},
        ],
    }))

    config = load_pricing_config(path)

    assert config.version == "2024-07-flat"
    assert config.gift_card_delivery_fee == Decimal("4.49")
    assert config.tiers[0].name == "Flat"


def test_load_pricing_config_rejects_invalid_file(tmp_path):
    path = tmp_path / "pricing.json"
    path.write_text(json.dumps({"rush_surcharge": -1}))

    with pytest.raises(InvalidRequestError) as exc:
        load_pricing_config(path)

    assert exc.value.fields == ["rush_surcharge"]
