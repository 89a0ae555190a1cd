import stripe
from artsafe.config import settings
from artsafe.utils.logger import logger
from typing import Optional, Dict, Any

stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeClient:
    @staticmethod
    def create_payment_link(
        amount: int,
        product_name: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        redirect_url: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Payment link whose funds land on the platform account and are held in escrow"""
        try:
            params: Dict[str, Any] = {
                "line_items": [
                    {
                        "price_data": {
                            "currency": currency or settings.STRIPE_CURRENCY,
                            "product_data": {
                                "name": product_name,
                                "description": description,
                                "metadata": metadata or {},
                            },
                            "unit_amount": amount,
                        },
                        "quantity": 1,
                    }
                ],
                "metadata": metadata or {},
                # copied onto the payment intent so webhooks can find the offer
                "payment_intent_data": {"metadata": metadata or {}},
            }
            if redirect_url:
                params["after_completion"] = {"type": "redirect", "redirect": {"url": redirect_url}}

            return stripe.PaymentLink.create(**params)
        except Exception as e:
            logger.error(f"Failed to create Stripe payment link: {e}")
            raise

    @staticmethod
    def create_transfer(
        amount: int,
        destination: str,
        transfer_group: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Connect transfer from the platform balance to a seller account"""
        try:
            params: Dict[str, Any] = {
                "amount": amount,
                "currency": currency or settings.STRIPE_CURRENCY,
                "destination": destination,
                "metadata": metadata or {},
            }
            if transfer_group:
                params["transfer_group"] = transfer_group

            return stripe.Transfer.create(**params)
        except Exception as e:
            logger.error(f"Failed to create Stripe transfer to {destination}: {e}")
            raise

    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str) -> Optional[Dict[str, Any]]:
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, settings.STRIPE_WEBHOOK_SECRET
            )
            return event
        except ValueError as e:
            logger.error(f"Invalid Stripe webhook payload: {e}")
            return None
        except stripe.error.SignatureVerificationError as e:
            logger.error(f"Invalid Stripe webhook signature: {e}")
            return None
