import uuid
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from artsafe.config import settings
from artsafe.core.exceptions import NotFoundException
from artsafe.core.permissions import Role
from artsafe.models.artwork import ArtworkStatus, Gallery, GalleryArtist
from artsafe.models.pricing import MarketSale, PriceEvaluation, PriceRecommendation
from artsafe.services.pricing_advisor import PricingAdvisorService, build_recommendation
from artsafe.services.pricing_evaluation import (
    PricingEvaluationService,
    calculate_market_statistics,
    determine_price_recommendation,
    filter_comparable_sales,
    median_cents,
    parse_dimensions,
    years_before,
)
from tests.factories import auth_headers, make_artwork, make_profile, make_sale

NOW = datetime(2026, 10, 19, 12, 0)


def sale(price_cents, days_ago=30, medium="Oil on canvas", dimensions="100x80 cm"):
    return MarketSale(
        artist_name="Anna Ancher",
        sale_price_cents=price_cents,
        sale_date=(NOW - timedelta(days=days_ago)).date(),
        medium=medium,
        dimensions=dimensions,
    )


class TestHeuristics:
    def test_parse_dimensions(self):
        assert parse_dimensions("100x80 cm") == 8000
        assert parse_dimensions("100 x 80 x 5 cm") == 8000
        assert parse_dimensions("large") is None
        assert parse_dimensions(None) is None

    def test_median_of_even_count_rounds_half_up(self):
        assert median_cents([100, 201]) == 151
        assert median_cents([100, 200, 300]) == 200

    def test_market_statistics(self):
        stats = calculate_market_statistics([sale(300), sale(100), sale(200), sale(401)])
        assert stats.min == 100
        assert stats.max == 401
        assert stats.median == 250
        assert stats.avg == 250

        assert calculate_market_statistics([]).median == 0

    def test_filter_drops_old_mismatched_and_oversized_sales(self):
        keep = sale(1_000, medium="oil")
        no_medium = sale(1_000, medium=None)
        too_old = sale(1_000, days_ago=6 * 365)
        bronze = sale(1_000, medium="Bronze")
        oversized = sale(1_000, dimensions="200x150 cm")

        result = filter_comparable_sales(
            [keep, no_medium, too_old, bronze, oversized], "Oil on canvas", "100x80 cm", now=NOW
        )

        assert result == [keep, no_medium]

    def test_leap_day_cutoff(self):
        assert years_before(date(2024, 2, 29), 1) == date(2023, 2, 28)

    def test_too_few_comparables(self):
        result = determine_price_recommendation(1_000_000, 1_300_000, 2)
        assert result.recommendation == PriceRecommendation.INSUFFICIENT_DATA
        assert result.confidence == pytest.approx(0.2)

    def test_zero_median_is_insufficient(self):
        result = determine_price_recommendation(1_000_000, 0, 5)
        assert result.recommendation == PriceRecommendation.INSUFFICIENT_DATA

    def test_underpriced(self):
        result = determine_price_recommendation(1_000_000, 1_300_000, 5)
        assert result.recommendation == PriceRecommendation.UNDERPRICED
        assert result.confidence == pytest.approx(0.6125)
        assert "23.1% below market median" in result.notes

    def test_three_comparables_is_enough(self):
        result = determine_price_recommendation(750_000, 1_000_000, 3)
        assert result.recommendation == PriceRecommendation.UNDERPRICED

    def test_overpriced_and_fair(self):
        assert determine_price_recommendation(1_400_000, 1_000_000, 5).recommendation == PriceRecommendation.OVERPRICED

        fair = determine_price_recommendation(1_100_000, 1_000_000, 20)
        assert fair.recommendation == PriceRecommendation.FAIRLY_PRICED
        assert fair.confidence == pytest.approx(0.95)

    def test_thresholds_are_exclusive(self):
        assert determine_price_recommendation(800_000, 1_000_000, 5).recommendation == PriceRecommendation.FAIRLY_PRICED
        assert determine_price_recommendation(1_300_000, 1_000_000, 5).recommendation == PriceRecommendation.FAIRLY_PRICED


class TestEvaluationService:
    async def test_fetch_market_data_matches_substring(self, db):
        await make_sale(db, artist_name="Anna Ancher")
        await make_sale(db, artist_name="Michael Ancher")
        await make_sale(db, artist_name="P.S. Krøyer")

        assert len(await PricingEvaluationService.fetch_market_data(db, "anna")) == 1
        assert len(await PricingEvaluationService.fetch_market_data(db, "ancher")) == 2
        assert await PricingEvaluationService.fetch_market_data(db, "%") == []
        assert await PricingEvaluationService.fetch_market_data(db, "  ") == []

    async def test_evaluates_underpriced_artwork(self, db, artwork):
        for days_ago in (10, 40, 90, 200, 400):
            await make_sale(db, price_cents=1_300_000, days_ago=days_ago)

        evaluation = await PricingEvaluationService.evaluate_artwork_price(db, artwork.id)

        assert evaluation.recommendation == PriceRecommendation.UNDERPRICED
        assert evaluation.comparable_sales_count == 5
        assert evaluation.market_median_price_cents == 1_300_000
        assert evaluation.confidence_score == pytest.approx(0.6125)
        assert evaluation.price_deviation_percent == pytest.approx(-23.0769, rel=1e-3)

    async def test_two_comparables_is_insufficient(self, db, artwork):
        await make_sale(db, price_cents=1_300_000)
        await make_sale(db, price_cents=1_200_000)

        evaluation = await PricingEvaluationService.evaluate_artwork_price(db, artwork.id)

        assert evaluation.recommendation == PriceRecommendation.INSUFFICIENT_DATA
        assert evaluation.confidence_score == pytest.approx(0.2)
        assert evaluation.comparable_sales_count == 2

    async def test_no_market_data(self, db, artwork):
        evaluation = await PricingEvaluationService.evaluate_artwork_price(db, artwork.id)

        assert evaluation.recommendation == PriceRecommendation.INSUFFICIENT_DATA
        assert evaluation.market_median_price_cents is None
        assert evaluation.price_deviation_percent is None

    async def test_evaluations_are_appended(self, db, artwork):
        first = await PricingEvaluationService.evaluate_artwork_price(db, artwork.id, now=NOW - timedelta(days=1))
        second = await PricingEvaluationService.evaluate_artwork_price(db, artwork.id, now=NOW)

        rows = (await db.execute(select(PriceEvaluation))).scalars().all()
        assert len(rows) == 2
        latest = await PricingEvaluationService.get_latest_evaluation(db, artwork.id)
        assert latest.id == second.id != first.id

    async def test_unknown_artwork(self, db):
        with pytest.raises(NotFoundException):
            await PricingEvaluationService.evaluate_artwork_price(db, uuid.uuid4())

    async def test_batch_evaluates_available_artworks(self, db, session_factory, seller, artwork):
        await make_artwork(db, seller, price_cents=500_000)
        sold = await make_artwork(db, seller)
        sold.status = ArtworkStatus.SOLD
        await db.commit()

        result = await PricingEvaluationService.evaluate_all_artworks(session_factory, concurrency=1, delay=0)

        assert result == {"success": 2, "failed": 0, "total": 2}


class TestPricingAdvisor:
    def test_recommendation_from_own_sales(self):
        sales = [sale(price, days_ago=30 * i) for i, price in enumerate([1_000_000, 1_100_000, 1_200_000, 1_300_000, 1_400_000], 1)]

        recommendation = build_recommendation(sales, "Oil on canvas", "100x80 cm", artist_specific=True, now=NOW)

        assert recommendation.suggested_price_cents == 1_200_000
        assert recommendation.price_range_min_cents == 1_100_000
        assert recommendation.price_range_max_cents == 1_300_000
        assert recommendation.comparable_sales_count == 5
        assert recommendation.confidence == pytest.approx(0.725)
        assert "Baseret på 5 salg af dine værker" in recommendation.market_insights
        assert "Stabil prisudvikling på markedet" in recommendation.market_insights

    async def test_falls_back_to_medium_with_lower_confidence(self, db):
        for price in (900_000, 1_000_000, 1_100_000):
            await make_sale(db, artist_name="Someone Else", price_cents=price, medium="Oil on canvas")

        recommendation = await PricingAdvisorService.get_pricing_recommendation(
            db, "Unknown Artist", medium="oil", dimensions=None
        )

        assert recommendation is not None
        assert recommendation.suggested_price_cents == 1_000_000
        own = build_recommendation(
            (await db.execute(select(MarketSale))).scalars().all(), "oil", None, artist_specific=True
        )
        assert recommendation.confidence == pytest.approx(own.confidence * 0.7)

    async def test_no_data(self, db):
        assert await PricingAdvisorService.get_pricing_recommendation(db, "Unknown Artist", medium="oil") is None


class TestPricingApi:
    async def test_artist_evaluates_own_artwork(self, client, db, seller, artwork):
        for days_ago in (10, 40, 90, 200, 400):
            await make_sale(db, price_cents=1_300_000, days_ago=days_ago)

        response = await client.get("/api/v1/pricing/evaluate", params={"artwork_id": str(artwork.id)}, headers=auth_headers(seller))
        assert response.status_code == 404

        response = await client.post("/api/v1/pricing/evaluate", json={"artwork_id": str(artwork.id)}, headers=auth_headers(seller))
        assert response.status_code == 200
        assert response.json()["evaluation"]["recommendation"] == "underpriced"

        response = await client.get("/api/v1/pricing/evaluate", params={"artwork_id": str(artwork.id)}, headers=auth_headers(seller))
        assert response.status_code == 200
        assert response.json()["comparable_sales_count"] == 5

    async def test_cannot_evaluate_someone_elses_artwork(self, client, db, artwork):
        other_artist = await make_profile(db, Role.ARTIST)

        response = await client.post("/api/v1/pricing/evaluate", json={"artwork_id": str(artwork.id)}, headers=auth_headers(other_artist))
        assert response.status_code == 403

    async def test_artwork_id_required(self, client, seller):
        response = await client.post("/api/v1/pricing/evaluate", json={}, headers=auth_headers(seller))
        assert response.status_code == 400

    async def test_evaluate_all_is_admin_only(self, client, seller, admin, artwork, monkeypatch):
        monkeypatch.setattr(settings, "PRICE_EVALUATION_CONCURRENCY", 1)
        monkeypatch.setattr(settings, "PRICE_EVALUATION_REQUEST_DELAY_SECONDS", 0)

        response = await client.post("/api/v1/pricing/evaluate", json={"evaluate_all": True}, headers=auth_headers(seller))
        assert response.status_code == 403

        response = await client.post("/api/v1/pricing/evaluate", json={"evaluate_all": True}, headers=auth_headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert body["success"] == 1
        assert body["total"] == 1

    async def test_advisor(self, client, db, seller, buyer):
        for price in (1_000_000, 1_200_000, 1_400_000):
            await make_sale(db, artist_name="Anna Ancher", price_cents=price)

        response = await client.post("/api/v1/pricing/advisor", json={"medium": "Oil on canvas"}, headers=auth_headers(seller))
        assert response.status_code == 200
        assert response.json()["recommendation"]["suggested_price_cents"] == 1_200_000

        response = await client.post("/api/v1/pricing/advisor", json={}, headers=auth_headers(buyer))
        assert response.status_code == 403


class TestGalleryApi:
    async def test_owner_can_reprice_member_artwork(self, client, db, seller, artwork):
        owner = await make_profile(db, Role.GALLERY)
        gallery = Gallery(owner_id=owner.id, name="Galleri Nord")
        db.add(gallery)
        await db.commit()
        db.add(GalleryArtist(gallery_id=gallery.id, artist_id=seller.id, status="active"))
        await db.commit()

        response = await client.post(
            "/api/v1/gallery/apply-price-suggestion",
            json={"artwork_id": str(artwork.id), "suggested_price_cents": 1_250_000},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        await db.refresh(artwork)
        assert artwork.price_cents == 1_250_000

    async def test_non_member_artwork_forbidden(self, client, db, artwork):
        owner = await make_profile(db, Role.GALLERY)
        db.add(Gallery(owner_id=owner.id, name="Galleri Syd"))
        await db.commit()

        response = await client.post(
            "/api/v1/gallery/apply-price-suggestion",
            json={"artwork_id": str(artwork.id), "suggested_price_cents": 1_250_000},
            headers=auth_headers(owner),
        )
        assert response.status_code == 403


class TestCronApi:
    async def test_requires_secret(self, client):
        response = await client.get("/api/v1/cron/evaluate-prices")
        assert response.status_code == 401

        response = await client.get("/api/v1/cron/evaluate-prices", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    async def test_process_timeouts(self, client):
        response = await client.get("/api/v1/cron/process-timeouts", headers={"Authorization": "Bearer test-cron-secret"})
        assert response.status_code == 200
        assert response.json()["expired_offers"] == 0
        assert response.json()["deadline_reminders"] == 0
