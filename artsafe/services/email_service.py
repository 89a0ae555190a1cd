from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from jinja2 import Environment, BaseLoader, select_autoescape
from typing import Optional, Dict, Any
from datetime import datetime
from uuid import UUID
from artsafe.config import settings
from artsafe.models.profile import Profile
from artsafe.models.notification import EmailNotification, EmailNotificationType, EmailStatus
from artsafe.utils.helpers import format_dkk
from artsafe.utils.logger import logger


_jinja = Environment(loader=BaseLoader(), autoescape=select_autoescape(default=True, default_for_string=True))
_jinja.filters["dkk"] = format_dkk


LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background-color: #000; color: white; padding: 20px; text-align: center; }
        .content { background-color: #f9fafb; padding: 30px; }
        .button { display: inline-block; padding: 12px 24px; background-color: #000; color: white; text-decoration: none; border-radius: 6px; }
        .footer { text-align: center; margin-top: 20px; color: #6b7280; font-size: 12px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>Art Is Safe</h1></div>
        <div class="content">{{ body }}</div>
        <div class="footer">
            <p>Denne e-mail er sendt automatisk af Art Is Safe. Du kan ikke svare på den.</p>
        </div>
    </div>
</body>
</html>
"""

EMAIL_TEMPLATES: Dict[EmailNotificationType, Dict[str, str]] = {
    EmailNotificationType.OFFER_CREATED: {
        "subject": "Nyt pristilbud modtaget",
        "body": """
            <h2>Du har modtaget et nyt pristilbud</h2>
            <p><strong>Tilbudt pris:</strong> {{ offered_price_cents | dkk }}</p>
            <p><strong>Listepris:</strong> {{ list_price_cents | dkk }}</p>
            {% if message %}<p><strong>Besked:</strong> {{ message }}</p>{% endif %}
            <p><a class="button" href="{{ dashboard_url }}">Se tilbud</a></p>
        """,
    },
    EmailNotificationType.OFFER_ACCEPTED: {
        "subject": "Dit pristilbud er accepteret",
        "body": """
            <h2>Godt nyt! Dit pristilbud er accepteret</h2>
            <p><strong>Aftalt pris:</strong> {{ offered_price_cents | dkk }}</p>
            <p>Du vil snart modtage et betalingslink.</p>
            <p><a class="button" href="{{ dashboard_url }}">Se detaljer</a></p>
        """,
    },
    EmailNotificationType.OFFER_REJECTED: {
        "subject": "Dit pristilbud er afvist",
        "body": """
            <h2>Dit pristilbud er afvist</h2>
            <p><strong>Dit tilbud:</strong> {{ offered_price_cents | dkk }}</p>
            <p>Du kan sende et nyt tilbud, hvis du ønsker det.</p>
        """,
    },
    EmailNotificationType.PAYMENT_LINK_READY: {
        "subject": "Betalingslink klar - gennemfør dit køb",
        "body": """
            <h2>Dit betalingslink er klar</h2>
            <p><strong>Beløb:</strong> {{ amount_cents | dkk }}</p>
            <p>Pengene holdes i escrow, indtil både du og sælger har godkendt handlen.</p>
            <p><a class="button" href="{{ payment_link_url }}">Betal nu</a></p>
            <p><small>Linket udløber om {{ hours_until_expiry }} timer</small></p>
        """,
    },
    EmailNotificationType.PAYMENT_RECEIVED: {
        "subject": "Betaling modtaget - escrow aktiveret",
        "body": """
            <h2>Betaling modtaget</h2>
            <p><strong>Beløb:</strong> {{ amount_cents | dkk }}</p>
            <p>Godkend leveringen i dashboard, når kunstværket er leveret.</p>
        """,
    },
    EmailNotificationType.SELLER_APPROVED: {
        "subject": "Sælger har godkendt levering",
        "body": """
            <h2>Sælger har godkendt levering</h2>
            <p>Godkend modtagelsen, når du har modtaget kunstværket.</p>
            <p><a class="button" href="{{ dashboard_url }}">Godkend modtagelse</a></p>
        """,
    },
    EmailNotificationType.BUYER_APPROVED: {
        "subject": "Køber har godkendt modtagelse",
        "body": """
            <h2>Køber har godkendt modtagelse</h2>
            <p>Køberen har bekræftet, at kunstværket er modtaget i god stand.</p>
            <p><a class="button" href="{{ dashboard_url }}">Se detaljer</a></p>
        """,
    },
    EmailNotificationType.ESCROW_RELEASED: {
        "subject": "Escrow frigivet - penge overført",
        "body": """
            <h2>Escrow frigivet</h2>
            <p><strong>Beløb:</strong> {{ amount_cents | dkk }}</p>
            <p><strong>Platformgebyr:</strong> {{ platform_fee_cents | dkk }}</p>
            <p><strong>Moms:</strong> {{ vat_cents | dkk }}</p>
            <p><strong>Udbetalt til sælger:</strong> {{ seller_amount_cents | dkk }}</p>
        """,
    },
    EmailNotificationType.PRICE_DEVIATION_ALERT: {
        "subject": "[ADMIN] Prisafvigelse detekteret",
        "body": """
            <h2>Prisafvigelse</h2>
            <p><strong>Listepris:</strong> {{ list_price_cents | dkk }}</p>
            <p><strong>Tilbudt pris:</strong> {{ offered_price_cents | dkk }}</p>
            <p><strong>Afvigelse:</strong> {{ deviation_percent }}%</p>
        """,
    },
    EmailNotificationType.PAYMENT_FAILED: {
        "subject": "[ADMIN] Betaling fejlet",
        "body": """
            <h2>Betaling fejlet</h2>
            <p><strong>Offer ID:</strong> {{ offer_id }}</p>
            <p><strong>Fejl:</strong> {{ error_message }}</p>
        """,
    },
    EmailNotificationType.OFFER_EXPIRED: {
        "subject": "Dit pristilbud er udløbet",
        "body": """
            <h2>Dit pristilbud er udløbet</h2>
            <p>Tilbuddet på {{ offered_price_cents | dkk }} blev ikke accepteret i tide.</p>
        """,
    },
    EmailNotificationType.APPROVAL_DEADLINE_WARNING: {
        "subject": "Husk at godkende din handel",
        "body": """
            {% if stalled %}
            <h2>Godkendelsesfristen er overskredet</h2>
            <p>Handlen afventer stadig godkendelse. Kontakt os, hvis der er problemer.</p>
            {% else %}
            <h2>Fristen for godkendelse nærmer sig</h2>
            <p>Godkend handlen senest {{ deadline }}.</p>
            {% endif %}
            <p><a class="button" href="{{ dashboard_url }}">Gå til dashboard</a></p>
        """,
    },
    EmailNotificationType.DISPUTE_CREATED: {
        "subject": "Der er oprettet en tvist",
        "body": """
            <h2>Der er oprettet en tvist</h2>
            <p><strong>Årsag:</strong> {{ reason }}</p>
            <p><a class="button" href="{{ dashboard_url }}">Se tvisten</a></p>
        """,
    },
    EmailNotificationType.DISPUTE_RESOLVED: {
        "subject": "Tvisten er løst",
        "body": """
            <h2>Tvisten er løst</h2>
            <p>{{ resolution }}</p>
        """,
    },
}


def render_email(notification_type: EmailNotificationType, template_data: Optional[Dict[str, Any]]) -> str:
    template = EMAIL_TEMPLATES[notification_type]
    body = _jinja.from_string(template["body"]).render(**(template_data or {}))
    # body is already escaped
    return _jinja.from_string(LAYOUT).render(body=_jinja.filters["safe"](body))


def dashboard_url(offer_id: Optional[UUID] = None) -> str:
    if offer_id:
        return f"{settings.SITE_URL}/dashboard/offers/{offer_id}"
    return f"{settings.SITE_URL}/dashboard"


class EmailService:
    _client: Optional[SendGridAPIClient] = None

    @classmethod
    def get_client(cls) -> Optional[SendGridAPIClient]:
        """Get SendGrid client instance"""
        if not settings.EMAIL_ENABLED:
            return None

        if not settings.SENDGRID_API_KEY:
            logger.warning("SendGrid API key not configured, email service disabled")
            return None

        if cls._client is None:
            cls._client = SendGridAPIClient(settings.SENDGRID_API_KEY)
            logger.info("SendGrid client initialized")

        return cls._client

    @classmethod
    async def send_email(cls, to_email: str, subject: str, html_content: str) -> bool:
        """Send an email via SendGrid"""
        client = cls.get_client()
        if not client:
            return False

        try:
            message = Mail(
                Email(settings.EMAIL_FROM_ADDRESS, settings.EMAIL_FROM_NAME),
                To(to_email),
                subject,
                Content("text/html", html_content),
            )
            response = client.send(message)

            if response.status_code in [200, 201, 202]:
                logger.info(f"Email sent successfully to {to_email}")
                return True

            logger.error(f"Failed to send email: {response.status_code} - {response.body}")
            return False
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {e}")
            return False

    @staticmethod
    async def queue_email_notification(
        db: AsyncSession,
        recipient_id: UUID,
        notification_type: EmailNotificationType,
        template_data: Optional[Dict[str, Any]] = None,
        offer_id: Optional[UUID] = None,
    ) -> Optional[EmailNotification]:
        """Queue an email for the delivery job. Does not commit."""
        result = await db.execute(select(Profile).where(Profile.id == recipient_id))
        recipient = result.scalar_one_or_none()

        if not recipient or not recipient.email:
            logger.warning(f"No email address for profile {recipient_id}, skipping {notification_type.value}")
            return None

        notification = EmailNotification(
            recipient_id=recipient_id,
            recipient_email=recipient.email,
            notification_type=notification_type,
            subject=EMAIL_TEMPLATES[notification_type]["subject"],
            template_data=template_data or {},
            offer_id=offer_id,
            status=EmailStatus.PENDING,
            retry_count=0,
        )
        db.add(notification)
        return notification

    @classmethod
    async def send_queued_email(cls, db: AsyncSession, notification: EmailNotification) -> bool:
        html_content = render_email(notification.notification_type, notification.template_data)
        sent = await cls.send_email(notification.recipient_email, notification.subject, html_content)

        if sent:
            notification.status = EmailStatus.SENT
            notification.sent_at = datetime.utcnow()
            notification.error_message = None
        else:
            notification.status = EmailStatus.FAILED
            notification.error_message = "Email provider rejected or was unavailable"
            notification.retry_count = (notification.retry_count or 0) + 1

        await db.commit()
        return sent

    @classmethod
    async def process_pending_emails(cls, db: AsyncSession, limit: Optional[int] = None) -> Dict[str, int]:
        """Deliver pending emails and retry failed ones below the retry ceiling"""
        if not settings.EMAIL_ENABLED:
            logger.debug("Email service disabled, skipping queue processing")
            return {"processed": 0, "failed": 0}

        result = await db.execute(
            select(EmailNotification)
            .where(
                or_(
                    EmailNotification.status == EmailStatus.PENDING,
                    EmailNotification.status == EmailStatus.FAILED,
                ),
                EmailNotification.retry_count < settings.EMAIL_MAX_RETRIES,
            )
            .order_by(EmailNotification.created_at.asc())
            .limit(limit or settings.EMAIL_BATCH_SIZE)
        )
        notifications = result.scalars().all()

        processed = 0
        failed = 0
        for notification in notifications:
            if await cls.send_queued_email(db, notification):
                processed += 1
            else:
                failed += 1

        logger.info(f"Email queue processed: {processed} sent, {failed} failed")
        return {"processed": processed, "failed": failed}
