"""Shared fixtures: catalog rows, an in-memory service container and an authenticated API client."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient

import shop.services as services_module
from core.config import DocumentConfig, LoyaltyConfig, StorageConfig, WhatsAppConfig
from shop.messaging import WhatsAppClient
from shop.models import Category, Product
from shop.services import BillingServices, set_services
from shop.services.checkout_service import CheckoutService
from shop.services.ledger import BillDraft, BillingLedger, LineItemDraft
from shop.services.loyalty_service import LoyaltyEngine
from shop.services.pdf_service import InvoiceRenderer
from shop.services.storage_service import StorageUploader
from shop.services.whatsapp_service import DeliveryCoordinator
from shop.storage import InMemoryStorageBackend

CUSTOMER_PHONE = "9999888877"


# ===================== CATALOG =====================
@pytest.fixture
def cakes(db):
    return Category.objects.create(name="Cakes")


@pytest.fixture
def snacks(db):
    return Category.objects.create(name="Snacks")


@pytest.fixture
def chocolate_cake(cakes):
    return Product.objects.create(name="Chocolate Cake", price=Decimal("500.00"), category=cakes)


@pytest.fixture
def black_forest(cakes):
    return Product.objects.create(
        name="Black Forest", price=Decimal("800.00"), price_type=Product.PRICE_PER_KG, category=cakes
    )


@pytest.fixture
def cookies(snacks):
    return Product.objects.create(name="Butter Cookies", price=Decimal("120.00"), category=snacks)


# ===================== SERVICES =====================
@pytest.fixture
def storage_backend():
    return InMemoryStorageBackend()


@pytest.fixture
def whatsapp_client():
    client = MagicMock(spec=WhatsAppClient)
    client.send_template.return_value = {"messages": [{"id": "wamid.template"}]}
    client.upload_media.return_value = "media-123"
    client.send_document.return_value = {
        "messages": [{"id": "wamid.document"}],
        "contacts": [{"wa_id": "919999888877"}],
    }
    return client


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def whatsapp_config():
    return WhatsAppConfig(api_token="test-token", phone_number_id="1234567890")


@pytest.fixture
def services(db, tmp_path, storage_backend, whatsapp_client, whatsapp_config, sleep):
    """Full container on in-memory storage and a mocked WhatsApp client, installed for views and tasks."""
    ledger = BillingLedger()
    loyalty = LoyaltyEngine(LoyaltyConfig(), ledger)
    renderer = InvoiceRenderer(DocumentConfig(scratch_dir=tmp_path / "scratch"))
    uploader = StorageUploader(StorageConfig(backend="memory"), storage_backend)
    delivery = DeliveryCoordinator(whatsapp_config, whatsapp_client, sleep=sleep)
    checkout = CheckoutService(loyalty, ledger, renderer, uploader)
    built = BillingServices(ledger, loyalty, renderer, uploader, delivery, checkout)

    previous = services_module._services
    set_services(built)
    yield built
    set_services(previous)


@pytest.fixture
def make_bill(services):
    """Persist a one-line bill straight through the ledger."""

    def _make(phone=CUSTOMER_PHONE, amount="500.00", has_cake_items=True, name="Test Customer",
              created_at=None, loyalty_info=None):
        amount = Decimal(amount)
        draft = BillDraft(
            customer_name=name,
            customer_phone=phone,
            items=[LineItemDraft(name="Chocolate Cake", price=amount, quantity=1)],
            subtotal=amount,
            total_discount=Decimal("0.00"),
            total=amount,
            has_cake_items=has_cake_items,
            loyalty_info=loyalty_info,
        )
        ledger = services.ledger if created_at is None else BillingLedger(clock=lambda: created_at)
        return ledger.create(draft)

    return _make


# ===================== API =====================
@pytest.fixture
def api_client(db):
    user = User.objects.create_user(username="cashier", password="secret-pass-123")
    client = APIClient()
    client.force_authenticate(user=user)
    return client
