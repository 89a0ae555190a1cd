import uuid
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from artsafe.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    PreconditionFailedException,
)
from artsafe.core.permissions import Role
from artsafe.models.alert import AdminAlert, AlertType, AlertSeverity
from artsafe.models.notification import EmailNotification, EmailNotificationType
from artsafe.models.offer import OfferAuditLog, OfferStatus, EnhancedOfferStatus
from artsafe.schemas.offer import OfferCreate
from artsafe.services.escrow_service import EscrowService
from artsafe.services.offer_service import OfferService
from tests.factories import auth_headers, make_offer, make_profile


def offer_input(artwork, seller, offered_price_cents=900_000, **kwargs):
    return OfferCreate(
        artwork_id=artwork.id,
        seller_id=seller.id,
        offered_price_cents=offered_price_cents,
        **kwargs,
    )


async def alerts_of_type(db, alert_type):
    result = await db.execute(select(AdminAlert).where(AdminAlert.alert_type == alert_type))
    return list(result.scalars().all())


class TestCreateOffer:
    async def test_creates_pending_offer(self, db, buyer, seller, artwork):
        offer = await OfferService.create_offer(db, buyer.id, offer_input(artwork, seller, message="Hej"))

        assert offer.status == OfferStatus.PENDING
        assert offer.enhanced_status == EnhancedOfferStatus.PENDING_OFFER
        assert offer.buyer_id == buyer.id
        assert offer.price_deviation_alert_sent is False
        assert offer.expires_at - datetime.utcnow() > timedelta(days=6)

        result = await db.execute(select(OfferAuditLog).where(OfferAuditLog.offer_id == offer.id))
        audit = result.scalars().all()
        assert [entry.event_type for entry in audit] == ["offer_created"]

        result = await db.execute(select(EmailNotification).where(EmailNotification.recipient_id == seller.id))
        emails = result.scalars().all()
        assert len(emails) == 1
        assert emails[0].notification_type == EmailNotificationType.OFFER_CREATED

    async def test_small_deviation_raises_no_alert(self, db, buyer, seller, artwork):
        await OfferService.create_offer(db, buyer.id, offer_input(artwork, seller, offered_price_cents=850_000))
        assert await alerts_of_type(db, AlertType.PRICE_DEVIATION) == []

    async def test_large_deviation_raises_medium_alert(self, db, buyer, seller, admin, artwork):
        offer = await OfferService.create_offer(db, buyer.id, offer_input(artwork, seller, offered_price_cents=700_000))

        assert offer.price_deviation_alert_sent is True
        alerts = await alerts_of_type(db, AlertType.PRICE_DEVIATION)
        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.MEDIUM
        assert alerts[0].offer_id == offer.id

        result = await db.execute(
            select(EmailNotification).where(
                EmailNotification.recipient_id == admin.id,
                EmailNotification.notification_type == EmailNotificationType.PRICE_DEVIATION_ALERT,
            )
        )
        assert len(result.scalars().all()) == 1

    async def test_half_price_offer_is_high_severity(self, db, buyer, seller, artwork):
        await OfferService.create_offer(db, buyer.id, offer_input(artwork, seller, offered_price_cents=400_000))

        alerts = await alerts_of_type(db, AlertType.PRICE_DEVIATION)
        assert alerts[0].severity == AlertSeverity.HIGH

    async def test_rejects_non_positive_price(self, db, buyer, seller, artwork):
        with pytest.raises(BadRequestException):
            await OfferService.create_offer(db, buyer.id, offer_input(artwork, seller, offered_price_cents=0))

    async def test_rejects_offer_on_own_artwork(self, db, seller, artwork):
        with pytest.raises(BadRequestException):
            await OfferService.create_offer(db, seller.id, offer_input(artwork, seller))

    async def test_rejects_seller_who_does_not_own_artwork(self, db, buyer, artwork):
        stranger = await make_profile(db, Role.ARTIST)
        with pytest.raises(BadRequestException) as exc:
            await OfferService.create_offer(db, buyer.id, offer_input(artwork, stranger))
        assert exc.value.detail == "Seller does not own this artwork"


class TestRespondToOffer:
    async def test_accept_creates_escrow_approval(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        accepted = await OfferService.accept_offer(db, offer.id, seller.id)

        assert accepted.status == OfferStatus.ACCEPTED
        assert accepted.enhanced_status == EnhancedOfferStatus.OFFER_ACCEPTED
        assert accepted.accepted_at is not None

        approval = await EscrowService.get_escrow_approval(db, offer.id)
        assert approval is not None
        assert approval.buyer_approved is False
        assert approval.seller_approved is False
        assert approval.approval_deadline - datetime.utcnow() > timedelta(days=13)

    async def test_second_accept_fails_precondition(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)
        await OfferService.accept_offer(db, offer.id, seller.id)

        with pytest.raises(PreconditionFailedException) as exc:
            await OfferService.accept_offer(db, offer.id, seller.id)
        assert exc.value.status_code == 412
        assert exc.value.detail == "Offer is not pending"

    async def test_only_seller_can_accept(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        with pytest.raises(ForbiddenException) as exc:
            await OfferService.accept_offer(db, offer.id, buyer.id)
        assert exc.value.detail == "Only seller can accept offer"

    async def test_reject(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        rejected = await OfferService.reject_offer(db, offer.id, seller.id)

        assert rejected.status == OfferStatus.REJECTED
        assert rejected.rejected_at is not None
        assert await EscrowService.get_escrow_approval(db, offer.id) is None

    async def test_unknown_offer(self, db, seller):
        with pytest.raises(NotFoundException):
            await OfferService.accept_offer(db, uuid.uuid4(), seller.id)


class TestPaymentState:
    async def test_payment_link_requires_accepted_offer(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        with pytest.raises(PreconditionFailedException):
            await OfferService.update_offer_payment_link(db, offer.id, "plink_1", "https://pay.example/1")

    async def test_payment_link_and_intent(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)
        await OfferService.accept_offer(db, offer.id, seller.id)

        offer = await OfferService.update_offer_payment_link(db, offer.id, "plink_1", "https://pay.example/1", seller.id)
        assert offer.enhanced_status == EnhancedOfferStatus.PAYMENT_LINK_CREATED
        assert offer.payment_deadline is not None

        offer = await OfferService.update_offer_payment_intent(db, offer.id, "pi_123")
        assert offer.enhanced_status == EnhancedOfferStatus.ESCROW_FUNDED
        assert offer.stripe_payment_intent_id == "pi_123"

        again = await OfferService.update_offer_payment_intent(db, offer.id, "pi_123")
        assert again.enhanced_status == EnhancedOfferStatus.ESCROW_FUNDED
        result = await db.execute(
            select(OfferAuditLog).where(OfferAuditLog.offer_id == offer.id, OfferAuditLog.event_type == "payment_received")
        )
        assert len(result.scalars().all()) == 1

    async def test_intent_does_not_fund_unaccepted_offer(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        unchanged = await OfferService.update_offer_payment_intent(db, offer.id, "pi_early")

        assert unchanged.status == OfferStatus.PENDING
        assert unchanged.enhanced_status == EnhancedOfferStatus.PENDING_OFFER
        assert unchanged.stripe_payment_intent_id is None

    async def test_intent_for_unknown_offer_returns_none(self, db):
        assert await OfferService.update_offer_payment_intent(db, uuid.uuid4(), "pi_lost") is None

    async def test_mark_payment_failed_emits_alert(self, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        await OfferService.mark_payment_failed(db, offer.id, "pi_failed", "Card declined")

        alerts = await alerts_of_type(db, AlertType.PAYMENT_FAILED)
        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.HIGH
        assert "Card declined" in alerts[0].message


class TestExpireOffers:
    async def test_expires_only_overdue_pending_offers(self, db, buyer, seller, artwork):
        overdue = await make_offer(db, buyer, seller, artwork, expires_at=datetime.utcnow() - timedelta(hours=1))
        fresh = await make_offer(db, buyer, seller, artwork)
        accepted = await make_offer(
            db, buyer, seller, artwork,
            status=OfferStatus.ACCEPTED,
            enhanced_status=EnhancedOfferStatus.OFFER_ACCEPTED,
            expires_at=datetime.utcnow() - timedelta(hours=1),
        )

        count = await OfferService.expire_offers(db)

        assert count == 1
        for offer in (overdue, fresh, accepted):
            await db.refresh(offer)
        assert overdue.status == OfferStatus.EXPIRED
        assert overdue.enhanced_status == EnhancedOfferStatus.EXPIRED
        assert fresh.status == OfferStatus.PENDING
        assert accepted.status == OfferStatus.ACCEPTED


class TestOffersApi:
    async def test_create_and_fetch(self, client, buyer, seller, artwork):
        response = await client.post(
            "/api/v1/offers",
            json={
                "artwork_id": str(artwork.id),
                "seller_id": str(seller.id),
                "offered_price_cents": 950_000,
            },
            headers=auth_headers(buyer),
        )
        assert response.status_code == 201
        offer = response.json()
        assert offer["status"] == "pending"
        assert offer["enhanced_status"] == "pending_offer"

        response = await client.get(f"/api/v1/offers/{offer['id']}", headers=auth_headers(seller))
        assert response.status_code == 200

        response = await client.get("/api/v1/offers/buyer", headers=auth_headers(buyer))
        assert [o["id"] for o in response.json()] == [offer["id"]]

    async def test_list_price_comes_from_artwork(self, client, db, buyer, seller, artwork):
        response = await client.post(
            "/api/v1/offers",
            json={
                "artwork_id": str(artwork.id),
                "seller_id": str(seller.id),
                "list_price_cents": 400_000,
                "offered_price_cents": 400_000,
            },
            headers=auth_headers(buyer),
        )

        assert response.status_code == 201
        assert response.json()["list_price_cents"] == artwork.price_cents
        alerts = await alerts_of_type(db, AlertType.PRICE_DEVIATION)
        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.HIGH

    async def test_seller_and_artwork_listings(self, client, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        response = await client.get("/api/v1/offers/seller", headers=auth_headers(seller))
        assert [o["id"] for o in response.json()] == [str(offer.id)]

        response = await client.get(f"/api/v1/offers/artwork/{artwork.id}", headers=auth_headers(seller))
        assert [o["id"] for o in response.json()] == [str(offer.id)]

        response = await client.get(f"/api/v1/offers/artwork/{artwork.id}", headers=auth_headers(buyer))
        assert response.status_code == 403

    async def test_requires_authentication(self, client):
        response = await client.get("/api/v1/offers/buyer")
        assert response.status_code == 401

    async def test_double_accept_returns_412(self, client, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        first = await client.post(f"/api/v1/offers/{offer.id}/accept", headers=auth_headers(seller))
        assert first.status_code == 200
        assert first.json()["enhanced_status"] == "offer_accepted"

        second = await client.post(f"/api/v1/offers/{offer.id}/accept", headers=auth_headers(seller))
        assert second.status_code == 412

    async def test_buyer_cannot_accept(self, client, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)

        response = await client.post(f"/api/v1/offers/{offer.id}/accept", headers=auth_headers(buyer))
        assert response.status_code == 403
        assert response.json()["detail"] == "Only seller can accept offer"

    async def test_outsider_cannot_view_offer(self, client, db, buyer, seller, artwork):
        offer = await make_offer(db, buyer, seller, artwork)
        outsider = await make_profile(db, Role.BUYER)

        response = await client.get(f"/api/v1/offers/{offer.id}", headers=auth_headers(outsider))
        assert response.status_code == 403
