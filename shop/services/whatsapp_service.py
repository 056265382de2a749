# shop/services/whatsapp_service.py
"""
DeliveryCoordinator: sends an invoice PDF to a customer over WhatsApp.

The Cloud API only accepts free-form messages inside an open conversation
window, so delivery is a fixed sequence:

    IDLE -> TEMPLATE_SENT -> WINDOW_ASSUMED_OPEN -> MEDIA_UPLOADED -> DOCUMENT_SENT

The template step may fail without failing delivery (the window may already
be open). Media upload and the document message are fatal. ``deliver``
never raises; it returns a ``DeliveryResult`` carrying the step log.
"""
import enum
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal

from django.utils import timezone

from core.exceptions import BillingError, ConfigurationError, FailureReason, ProviderError
from shop import pricing
from shop.messaging import normalize_phone

logger = logging.getLogger(__name__)

RUPEE = "₹"
DIVIDER = "─" * 30


class DeliveryState(str, enum.Enum):
    IDLE = "idle"
    TEMPLATE_SENT = "template_sent"
    WINDOW_ASSUMED_OPEN = "window_assumed_open"
    MEDIA_UPLOADED = "media_uploaded"
    DOCUMENT_SENT = "document_sent"
    FAILED = "failed"


# Template failure is non-fatal, so IDLE may skip straight to the window step
TRANSITIONS = {
    DeliveryState.IDLE: {DeliveryState.TEMPLATE_SENT, DeliveryState.WINDOW_ASSUMED_OPEN},
    DeliveryState.TEMPLATE_SENT: {DeliveryState.WINDOW_ASSUMED_OPEN},
    DeliveryState.WINDOW_ASSUMED_OPEN: {DeliveryState.MEDIA_UPLOADED},
    DeliveryState.MEDIA_UPLOADED: {DeliveryState.DOCUMENT_SENT},
    DeliveryState.DOCUMENT_SENT: set(),
    DeliveryState.FAILED: set(),
}


@dataclass
class DeliveryAttempt:
    bill_number: str
    recipient: str = ""
    state: DeliveryState = DeliveryState.IDLE
    steps: list = field(default_factory=list)

    def advance(self, state, detail=""):
        if state != DeliveryState.FAILED and state not in TRANSITIONS[self.state]:
            raise ValueError(f"Illegal delivery transition {self.state.value} -> {state.value}")
        self.state = state
        self.steps.append((state.value, detail))
        logger.debug(f"Delivery {self.bill_number}: {state.value} {detail}".rstrip())

    def note(self, detail):
        """Record an event that does not change state (a non-fatal failure)."""
        self.steps.append((self.state.value, detail))

    def fail(self, detail):
        self.advance(DeliveryState.FAILED, detail)

    def as_dict(self):
        return {
            "bill_number": self.bill_number,
            "recipient": self.recipient,
            "state": self.state.value,
            "steps": [{"state": state, "detail": detail} for state, detail in self.steps],
        }


@dataclass
class DeliveryResult:
    success: bool
    message: str = ""
    message_id: str | None = None
    recipient_id: str | None = None
    error: str | None = None
    reason: FailureReason | None = None
    test_mode: bool = False
    attempt: DeliveryAttempt | None = None

    def as_dict(self):
        return {
            "success": self.success,
            "message": self.message,
            "message_id": self.message_id,
            "recipient_id": self.recipient_id,
            "error": self.error,
            "reason": self.reason.value if self.reason else None,
            "test_mode": self.test_mode,
            "attempt": self.attempt.as_dict() if self.attempt else None,
        }


# ===================== CAPTION =====================
def _amount(value):
    return pricing.format_rupees(value, symbol=RUPEE)


def _quantity(value):
    return f"{Decimal(value).normalize():f}"


def build_caption(bill, items=None, business_name="CakeRaft", loyalty_reminder=None):
    items = list(bill.items.all()) if items is None else list(items)
    customer_name = bill.customer_name or "Valued Customer"
    loyalty = bill.loyalty_info or {}
    loyalty_applied = bool(loyalty.get("applied"))

    lines = [
        f"\U0001F382 *{business_name}* - Invoice",
        "",
        f"Dear {customer_name},",
        "",
        "Thank you for your order! \U0001F496",
        "",
    ]

    if items:
        lines.append("\U0001F4E6 *Order Details:*")
        lines.append(DIVIDER)
        for index, item in enumerate(items, start=1):
            subtotal = pricing.line_subtotal(item.price, item.quantity, item.weight)
            if item.weight:
                detail = f"   {_quantity(item.weight)}kg × {_amount(item.price)}/kg"
                if item.quantity > 1:
                    detail += f" × {item.quantity}"
            else:
                detail = f"   {item.quantity} × {_amount(item.price)}"
            lines.append(f"{index}. *{item.name}*")
            lines.append(f"{detail} = {_amount(subtotal)}")
        lines.append(DIVIDER)
        lines.append(f"\U0001F4B5 *Subtotal:* {_amount(bill.subtotal)}")

    if bill.total_discount and not loyalty_applied:
        lines.append(f"\U0001F3F7 *Discount:* -{_amount(bill.total_discount)}")
    if loyalty_applied and loyalty.get("discount_amount"):
        lines.append(
            f"\U0001F389 *LOYALTY REWARD!* -{_amount(loyalty['discount_amount'])} "
            f"({_quantity(Decimal(str(loyalty.get('discount_percentage', 0))))}% off) \U0001F389"
        )

    created_at = timezone.localtime(bill.created_at) if bill.created_at else timezone.localtime()
    lines += [
        f"\U0001F4B0 *Total Amount:* {_amount(bill.total)}",
        "",
        f"\U0001F4CB *Bill #:* {bill.bill_number}",
        f"\U0001F4C5 *Date:* {created_at:%d/%m/%Y}",
        "",
        "Your artisan cakes are being crafted with passion! \U0001F9C1",
        "",
    ]
    if not loyalty_applied and loyalty_reminder:
        lines += [f"\U0001F381 *{loyalty_reminder}*", ""]
    lines += [
        "For any questions, feel free to contact us.",
        "",
        f"*{business_name} Team* \U0001F382",
    ]
    return "\n".join(lines)


# ===================== COORDINATOR =====================
class DeliveryCoordinator:
    def __init__(self, config, client, business_name="CakeRaft", loyalty_reminder=None, sleep=time.sleep):
        self.config = config
        self.client = client
        self.business_name = business_name
        self.loyalty_reminder = loyalty_reminder
        self.sleep = sleep

    @property
    def is_configured(self):
        return self.config.is_configured

    @property
    def test_mode(self):
        return self.config.test_mode

    def status(self):
        return {
            "configured": self.is_configured,
            "test_mode": self.test_mode,
            "api_token": "Set" if self.config.api_token else "Missing",
            "phone_number_id": "Set" if self.config.phone_number_id else "Missing",
            "base_url": self.config.base_url,
            "template_name": self.config.template_name,
        }

    def document_filename(self, bill):
        return f"{self.business_name}_Bill_{bill.bill_number}.pdf"

    def deliver(self, bill, phone, content, items=None):
        recipient = normalize_phone(phone, self.config.country_code)
        attempt = DeliveryAttempt(bill_number=bill.bill_number, recipient=recipient)

        if self.test_mode:
            logger.info(f"TEST MODE: simulating WhatsApp delivery of {bill.bill_number} to {recipient}")
            self.sleep(self.config.test_mode_delay_seconds)
            attempt.note("test mode, no network calls")
            return DeliveryResult(
                success=True,
                message="Bill sent successfully via WhatsApp (TEST MODE)",
                message_id=f"test_msg_{bill.bill_number}",
                recipient_id=recipient,
                test_mode=True,
                attempt=attempt,
            )

        if not self.is_configured:
            attempt.fail("not configured")
            return DeliveryResult(
                success=False,
                error="WhatsApp API not configured. Please contact admin.",
                reason=FailureReason.NOT_CONFIGURED,
                attempt=attempt,
            )

        try:
            return self._run(bill, recipient, content, items, attempt)
        except BillingError as e:
            reason = e.reason if isinstance(e, ProviderError) else (
                FailureReason.NOT_CONFIGURED if isinstance(e, ConfigurationError) else FailureReason.UNKNOWN
            )
            logger.error(f"WhatsApp delivery of {bill.bill_number} failed at {attempt.state.value}: {e.message}")
            attempt.fail(e.message)
            return DeliveryResult(success=False, error=e.message, reason=reason, recipient_id=recipient,
                                  attempt=attempt)
        except Exception as e:
            logger.error(f"Unexpected error delivering {bill.bill_number}: {e}", exc_info=True)
            attempt.fail(str(e))
            return DeliveryResult(success=False, error="Failed to send bill via WhatsApp",
                                  reason=FailureReason.UNKNOWN, recipient_id=recipient, attempt=attempt)

    def _run(self, bill, recipient, content, items, attempt):
        # Step 1: template message opens the conversation window (non-fatal)
        try:
            self.client.send_template(recipient)
            attempt.advance(DeliveryState.TEMPLATE_SENT)
        except ProviderError as e:
            logger.warning(f"Template message failed for {recipient}, trying direct PDF send: {e.message}")
            attempt.note(f"template failed: {e.message}")

        # Step 2: the API gives no signal that the window is open, so wait a fixed delay
        self.sleep(self.config.window_delay_seconds)
        attempt.advance(DeliveryState.WINDOW_ASSUMED_OPEN, f"waited {self.config.window_delay_seconds}s")

        # Step 3: media upload
        filename = self.document_filename(bill)
        media_id = self.client.upload_media(content, filename)
        attempt.advance(DeliveryState.MEDIA_UPLOADED, media_id)

        # Step 4: document message
        caption = build_caption(bill, items, self.business_name, self.loyalty_reminder)
        response = self.client.send_document(recipient, media_id, caption=caption, filename=filename)
        message_id = (response.get("messages") or [{}])[0].get("id")
        recipient_id = (response.get("contacts") or [{}])[0].get("wa_id") or recipient
        attempt.advance(DeliveryState.DOCUMENT_SENT, message_id or "")

        logger.info(f"Bill {bill.bill_number} delivered via WhatsApp to {recipient}: message {message_id}")
        return DeliveryResult(
            success=True,
            message="Bill sent successfully via WhatsApp",
            message_id=message_id,
            recipient_id=recipient_id,
            attempt=attempt,
        )
