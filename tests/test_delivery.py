from decimal import Decimal

import pytest

from core.config import WhatsAppConfig
from core.exceptions import FailureReason, ProviderAuthError, ProviderError, TransientNetworkError
from shop.services.whatsapp_service import (
    DeliveryAttempt,
    DeliveryCoordinator,
    DeliveryState,
    build_caption,
)

PDF = b"%PDF-1.4 invoice"


@pytest.fixture
def bill(make_bill):
    return make_bill(name="Asha")


@pytest.fixture
def coordinator(whatsapp_client, whatsapp_config, sleep):
    return DeliveryCoordinator(whatsapp_config, whatsapp_client, loyalty_reminder="Earn rewards!", sleep=sleep)


class TestDeliveryAttempt:
    def test_happy_path_transitions(self):
        attempt = DeliveryAttempt(bill_number="BILL-1")
        for state in (DeliveryState.TEMPLATE_SENT, DeliveryState.WINDOW_ASSUMED_OPEN,
                      DeliveryState.MEDIA_UPLOADED, DeliveryState.DOCUMENT_SENT):
            attempt.advance(state)

        assert attempt.state == DeliveryState.DOCUMENT_SENT
        assert [s for s, _ in attempt.steps] == [
            "template_sent", "window_assumed_open", "media_uploaded", "document_sent",
        ]

    def test_window_cannot_be_skipped(self):
        attempt = DeliveryAttempt(bill_number="BILL-1")
        attempt.advance(DeliveryState.TEMPLATE_SENT)

        with pytest.raises(ValueError):
            attempt.advance(DeliveryState.MEDIA_UPLOADED)

    def test_failure_is_terminal(self):
        attempt = DeliveryAttempt(bill_number="BILL-1")
        attempt.fail("boom")

        with pytest.raises(ValueError):
            attempt.advance(DeliveryState.TEMPLATE_SENT)


@pytest.mark.django_db
class TestDeliver:
    def test_full_sequence(self, coordinator, whatsapp_client, sleep, bill):
        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is True
        assert result.message_id == "wamid.document"
        assert result.recipient_id == "919999888877"
        assert result.attempt.state == DeliveryState.DOCUMENT_SENT
        whatsapp_client.send_template.assert_called_once_with("919999888877")
        sleep.assert_called_once_with(3.0)
        whatsapp_client.upload_media.assert_called_once_with(PDF, f"CakeRaft_Bill_{bill.bill_number}.pdf")
        args, kwargs = whatsapp_client.send_document.call_args
        assert args == ("919999888877", "media-123")
        assert kwargs["filename"] == f"CakeRaft_Bill_{bill.bill_number}.pdf"
        assert bill.bill_number in kwargs["caption"]

    def test_template_failure_is_not_fatal(self, coordinator, whatsapp_client, bill):
        whatsapp_client.send_template.side_effect = ProviderError("template not approved")

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is True
        assert ("idle", "template failed: template not approved") in result.attempt.steps
        whatsapp_client.send_document.assert_called_once()

    def test_media_upload_failure_is_fatal(self, coordinator, whatsapp_client, bill):
        whatsapp_client.upload_media.side_effect = ProviderAuthError(
            "WhatsApp API token has expired. Please update your access token."
        )

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is False
        assert result.reason == FailureReason.EXPIRED_CREDENTIAL
        assert result.attempt.state == DeliveryState.FAILED
        whatsapp_client.send_document.assert_not_called()

    def test_document_send_failure(self, coordinator, whatsapp_client, bill):
        whatsapp_client.send_document.side_effect = TransientNetworkError("WhatsApp API unreachable")

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is False
        assert result.reason == FailureReason.TRANSIENT
        assert result.as_dict()["reason"] == "transient"

    def test_unexpected_error_is_reported(self, coordinator, whatsapp_client, bill):
        whatsapp_client.upload_media.side_effect = RuntimeError("socket exploded")

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is False
        assert result.reason == FailureReason.UNKNOWN
        assert result.error == "Failed to send bill via WhatsApp"

    def test_not_configured(self, whatsapp_client, sleep, bill):
        coordinator = DeliveryCoordinator(WhatsAppConfig(), whatsapp_client, sleep=sleep)

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is False
        assert result.reason == FailureReason.NOT_CONFIGURED
        whatsapp_client.send_template.assert_not_called()

    def test_test_mode_makes_no_calls(self, whatsapp_client, sleep, bill):
        config = WhatsAppConfig(test_mode=True)
        coordinator = DeliveryCoordinator(config, whatsapp_client, sleep=sleep)

        result = coordinator.deliver(bill, "9999888877", PDF)

        assert result.success is True
        assert result.test_mode is True
        assert result.message_id == f"test_msg_{bill.bill_number}"
        sleep.assert_called_once_with(2.0)
        whatsapp_client.send_template.assert_not_called()
        whatsapp_client.upload_media.assert_not_called()

    def test_status(self, coordinator):
        assert coordinator.status() == {
            "configured": True,
            "test_mode": False,
            "api_token": "Set",
            "phone_number_id": "Set",
            "base_url": "https://graph.facebook.com/v18.0",
            "template_name": "hello_world",
        }


@pytest.mark.django_db
class TestCaption:
    def test_lists_items_and_total(self, bill):
        caption = build_caption(bill, loyalty_reminder="Earn rewards!")

        assert "*CakeRaft* - Invoice" in caption
        assert "Dear Asha," in caption
        assert "1. *Chocolate Cake*" in caption
        assert "1 × ₹500.00 = ₹500.00" in caption
        assert "*Total Amount:* ₹500.00" in caption
        assert "*Earn rewards!*" in caption

    def test_loyalty_reward_replaces_reminder(self, make_bill):
        bill = make_bill(loyalty_info={"applied": True, "discount_amount": 50.0, "discount_percentage": 10.0})

        caption = build_caption(bill, loyalty_reminder="Earn rewards!")

        assert "*LOYALTY REWARD!* -₹50.00 (10% off)" in caption
        assert "Earn rewards!" not in caption

    def test_weight_priced_item(self, bill):
        item = bill.items.first()
        item.name = "Black Forest (1.5kg)"
        item.weight = Decimal("1.5")
        item.price = Decimal("800.00")
        item.quantity = 2

        caption = build_caption(bill, items=[item])

        assert "1.5kg × ₹800.00/kg × 2 = ₹2,400.00" in caption
