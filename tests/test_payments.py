import uuid
from unittest.mock import patch

from sqlalchemy import select

from artsafe.models.alert import AdminAlert, AlertType
from artsafe.models.notification import EmailNotification, EmailNotificationType
from artsafe.models.offer import EnhancedOfferStatus, OfferAuditLog, OfferStatus
from tests.factories import make_funded_escrow, make_offer

VERIFY = "artsafe.api.v1.payments.StripeClient.verify_webhook_signature"
WEBHOOK = "/api/v1/payments/webhook"


def event(event_type, **obj):
    return {"type": event_type, "data": {"object": obj}}


async def post_event(client, payload):
    with patch(VERIFY, return_value=payload):
        return await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})


async def test_missing_signature(client):
    response = await client.post(WEBHOOK, content=b"{}")

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing signature"


async def test_invalid_signature(client):
    response = await client.post(WEBHOOK, content=b"{}", headers={"stripe-signature": "t=1,v1=forged"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid signature"


async def test_succeeded_funds_escrow(client, db, buyer, seller, artwork):
    offer = await make_offer(
        db, buyer, seller, artwork,
        status=OfferStatus.ACCEPTED,
        enhanced_status=EnhancedOfferStatus.PAYMENT_LINK_CREATED,
    )

    response = await post_event(
        client, event("payment_intent.succeeded", id="pi_live_42", metadata={"offer_id": str(offer.id)})
    )

    assert response.status_code == 200
    assert response.json() == {"status": "success"}
    await db.refresh(offer)
    assert offer.stripe_payment_intent_id == "pi_live_42"
    assert offer.enhanced_status == EnhancedOfferStatus.ESCROW_FUNDED


async def test_failed_payment_raises_alert(client, db, buyer, seller, artwork):
    offer = await make_offer(db, buyer, seller, artwork, status=OfferStatus.ACCEPTED)

    response = await post_event(
        client,
        event(
            "payment_intent.payment_failed",
            id="pi_declined",
            metadata={"offer_id": str(offer.id)},
            last_payment_error={"message": "Your card was declined."},
        ),
    )

    assert response.status_code == 200
    alert = (await db.execute(select(AdminAlert))).scalar_one()
    assert alert.alert_type == AlertType.PAYMENT_FAILED
    assert alert.meta_data["last_payment_error"] == "Your card was declined."


async def test_events_without_offer_are_ignored(client, db):
    for payload in (
        event("payment_intent.succeeded", id="pi_1", metadata={}),
        event("payment_intent.succeeded", id="pi_2", metadata={"offer_id": "not-a-uuid"}),
        event("charge.refunded", id="ch_1"),
    ):
        response = await post_event(client, payload)
        assert response.status_code == 200

    assert (await db.execute(select(AdminAlert))).first() is None


async def test_unknown_offer_is_acknowledged(client, db):
    response = await post_event(
        client, event("payment_intent.succeeded", id="pi_orphan", metadata={"offer_id": str(uuid.uuid4())})
    )

    assert response.status_code == 200
    assert response.json() == {"status": "success"}


async def test_redelivered_success_keeps_released_offer(client, db, buyer, seller, artwork):
    offer, approval = await make_funded_escrow(
        db, buyer, seller, artwork, buyer_approved=True, seller_approved=True, both_approved=True, funds_released=True
    )
    offer.enhanced_status = EnhancedOfferStatus.RELEASED
    await db.commit()

    payload = event("payment_intent.succeeded", id="pi_test_123", metadata={"offer_id": str(offer.id)})
    for _ in range(2):
        response = await post_event(client, payload)
        assert response.status_code == 200

    await db.refresh(offer)
    assert offer.enhanced_status == EnhancedOfferStatus.RELEASED
    audit = (await db.execute(select(OfferAuditLog).where(OfferAuditLog.event_type == "payment_received"))).first()
    assert audit is None


async def test_redelivered_success_records_once(client, db, buyer, seller, artwork):
    offer = await make_offer(
        db, buyer, seller, artwork,
        status=OfferStatus.ACCEPTED,
        enhanced_status=EnhancedOfferStatus.PAYMENT_LINK_CREATED,
    )
    payload = event("payment_intent.succeeded", id="pi_once", metadata={"offer_id": str(offer.id)})

    for _ in range(3):
        assert (await post_event(client, payload)).status_code == 200

    audit = (await db.execute(
        select(OfferAuditLog).where(OfferAuditLog.offer_id == offer.id, OfferAuditLog.event_type == "payment_received")
    )).scalars().all()
    assert len(audit) == 1
    emails = (await db.execute(
        select(EmailNotification).where(EmailNotification.notification_type == EmailNotificationType.PAYMENT_RECEIVED)
    )).scalars().all()
    assert len(emails) == 2


async def test_success_for_disputed_offer_keeps_dispute(client, db, buyer, seller, artwork):
    offer = await make_offer(
        db, buyer, seller, artwork,
        status=OfferStatus.ACCEPTED,
        enhanced_status=EnhancedOfferStatus.DISPUTED,
    )

    await post_event(client, event("payment_intent.succeeded", id="pi_late", metadata={"offer_id": str(offer.id)}))

    await db.refresh(offer)
    assert offer.enhanced_status == EnhancedOfferStatus.DISPUTED
    assert offer.stripe_payment_intent_id is None
