"""Tests for incremental profile merging."""

from datetime import datetime, timedelta

import pytest

from shop_story.models import (
    BrandAffinity,
    CategoryWeight,
    ColorProfile,
    PriceRange,
    Season,
    SeasonalData,
    StyleProfile,
)
from shop_story.services.profile_merge import (
    calculate_overall_evolution,
    calculate_style_evolution,
    merge_brand_affinities,
    merge_category_weights,
    merge_color_profiles,
    merge_price_ranges,
    merge_seasonal_trends,
    update_style_profile,
)


def _color(color: str, frequency: float, confidence: float = 0.8) -> ColorProfile:
    return ColorProfile(color=color, name=color, frequency=frequency, confidence=confidence)


class TestMergeColors:
    """Tests for color decay-and-blend merging."""

    def test_empty_new_keeps_existing(self) -> None:
        existing = [_color("#000080", 0.5)]

        assert merge_color_profiles(existing, []) == existing

    def test_existing_color_decays(self) -> None:
        merged = merge_color_profiles([_color("#000080", 0.5)], [_color("#FFFFFF", 0.4)])
        by_color = {c.color: c for c in merged}

        assert by_color["#000080"].frequency == pytest.approx(0.35)
        assert by_color["#000080"].confidence == pytest.approx(0.64)
        assert by_color["#FFFFFF"].frequency == pytest.approx(0.12)

    def test_shared_color_blends(self) -> None:
        merged = merge_color_profiles(
            [_color("#000080", 0.6, 1.0)], [_color("#000080", 0.4, 0.6)]
        )

        assert len(merged) == 1
        # (0.6 * 0.7 + 0.4 * 0.3) / 2
        assert merged[0].frequency == pytest.approx(0.27)
        assert merged[0].confidence == pytest.approx((0.8 + 0.6) / 2)

    def test_sorted_by_frequency(self) -> None:
        merged = merge_color_profiles([_color("#000080", 0.1)], [_color("#FFFFFF", 0.9)])

        assert [c.color for c in merged] == ["#FFFFFF", "#000080"]


class TestMergeBrandsAndCategories:
    """Tests for brand and category merging."""

    def test_brand_merge_accumulates_purchases(self, now: datetime) -> None:
        earlier = now - timedelta(days=10)
        existing = [
            BrandAffinity(
                brand_name="Everlane",
                affinity=0.5,
                purchase_count=3,
                average_spend=100.0,
                last_purchase=earlier,
                categories=["shirts"],
            )
        ]
        new = [
            BrandAffinity(
                brand_name="Everlane",
                affinity=0.5,
                purchase_count=1,
                average_spend=50.0,
                last_purchase=now,
                categories=["shirts", "pants"],
            )
        ]

        merged = merge_brand_affinities(existing, new)[0]

        assert merged.affinity == pytest.approx((0.4 + 0.1) / 2)
        assert merged.purchase_count == 4
        assert merged.average_spend == 75.0
        assert merged.last_purchase == now
        assert merged.categories == ["shirts", "pants"]

    def test_new_brand_is_blended_down(self) -> None:
        merged = merge_brand_affinities([], [BrandAffinity(brand_name="COS", affinity=1.0)])

        assert merged[0].affinity == pytest.approx(0.2)

    def test_brand_empty_new(self) -> None:
        existing = [BrandAffinity(brand_name="COS", affinity=0.9)]

        assert merge_brand_affinities(existing, []) == existing

    def test_category_merge(self) -> None:
        existing = [CategoryWeight(category="shirts", weight=0.5, purchase_frequency=2)]
        new = [
            CategoryWeight(category="shirts", weight=1.0, purchase_frequency=1),
            CategoryWeight(category="pants", weight=0.5),
        ]

        merged = {c.category: c for c in merge_category_weights(existing, new)}

        assert merged["shirts"].weight == pytest.approx((0.4 + 0.2) / 2)
        assert merged["shirts"].purchase_frequency == 3
        assert merged["pants"].weight == pytest.approx(0.1)


class TestMergePricesAndSeasons:
    """Tests for price range and seasonal merging."""

    def test_price_ranges_widen(self) -> None:
        existing = [PriceRange(category="shirts", min=30, max=80, average=50, frequency=2)]
        new = [PriceRange(category="shirts", min=20, max=60, average=40, frequency=4)]

        merged = merge_price_ranges(existing, new)[0]

        assert (merged.min, merged.max) == (20, 80)
        assert merged.average == 45
        assert merged.frequency == 3

    def test_new_season_replaces_same_key(self) -> None:
        old = SeasonalData(season=Season.SUMMER, year=2024, spending_pattern=10.0)
        fresh = SeasonalData(season=Season.SUMMER, year=2024, spending_pattern=99.0)

        merged = merge_seasonal_trends([old], [fresh])

        assert merged == [fresh]

    def test_keeps_four_most_recent(self) -> None:
        trends = [
            SeasonalData(season=season, year=year)
            for year in (2023, 2024)
            for season in (Season.SPRING, Season.SUMMER, Season.FALL)
        ]

        merged = merge_seasonal_trends(trends[:3], trends[3:])

        assert len(merged) == 4
        assert (merged[0].season, merged[0].year) == (Season.FALL, 2024)
        assert (merged[-1].season, merged[-1].year) == (Season.FALL, 2023)


class TestStyleEvolution:
    """Tests for comparing two profile snapshots."""

    def test_identical_profiles(self, sample_profile: StyleProfile) -> None:
        assert calculate_style_evolution(sample_profile, sample_profile) == 0.0

    def test_no_comparable_factors(self, sample_user_id: str) -> None:
        empty = StyleProfile(user_id=sample_user_id)

        assert calculate_style_evolution(empty, empty) == 0.0

    def test_completely_new_colors(self, sample_user_id: str) -> None:
        before = StyleProfile(user_id=sample_user_id, dominant_colors=[_color("#000080", 0.5)])
        after = StyleProfile(user_id=sample_user_id, dominant_colors=[_color("#FFFFFF", 0.5)])

        assert calculate_style_evolution(before, after) == pytest.approx(0.3)

    def test_cheaper_purchases_are_negative(self, sample_user_id: str) -> None:
        before = StyleProfile(
            user_id=sample_user_id,
            price_ranges=[PriceRange(category="shirts", min=100, max=100, average=100)],
        )
        after = StyleProfile(
            user_id=sample_user_id,
            price_ranges=[PriceRange(category="shirts", min=50, max=50, average=50)],
        )

        assert calculate_style_evolution(before, after) == pytest.approx(-0.1)

    def test_overall_evolution(self) -> None:
        trends = [
            SeasonalData(season=Season.SPRING, year=2024, style_evolution=0.5),
            SeasonalData(season=Season.SUMMER, year=2024, style_evolution=-0.1),
        ]

        assert calculate_overall_evolution(trends) == pytest.approx(0.2)
        assert calculate_overall_evolution([]) == 0.0


class TestUpdateStyleProfile:
    """Tests for the full incremental update."""

    def test_last_updated_strictly_advances(self, sample_profile: StyleProfile, make_event) -> None:
        stale_now = sample_profile.last_updated - timedelta(hours=1)

        updated = update_style_profile(sample_profile, [make_event()], stale_now)

        assert updated.last_updated > sample_profile.last_updated

    def test_merges_new_brand(self, sample_profile: StyleProfile, make_event, now: datetime) -> None:
        event = make_event("purchase", brand_name="Reformation", price=120.0)

        updated = update_style_profile(sample_profile, [event], now + timedelta(hours=1))

        brands = [b.brand_name for b in updated.preferred_brands]
        assert "Reformation" in brands
        assert updated.user_id == sample_profile.user_id
        assert -1.0 <= updated.evolution_score <= 1.0

    def test_no_new_events_keeps_facets(self, sample_profile: StyleProfile, now: datetime) -> None:
        updated = update_style_profile(sample_profile, [], now)

        assert updated.dominant_colors == sample_profile.dominant_colors
        assert updated.preferred_brands == sample_profile.preferred_brands
        assert updated.evolution_score == 0.0
