# shop/services/__init__.py
"""
Service wiring.

``build_services`` turns settings into validated config dataclasses and
builds every billing component once. ``ShopConfig.ready()`` calls it at
start-up; views and tasks fetch the container with ``get_services()``.
Tests swap it with ``set_services()``.
"""
import logging
from dataclasses import dataclass

from core.config import DocumentConfig, LoyaltyConfig, StorageConfig, WhatsAppConfig
from core.exceptions import ConfigurationError
from shop.messaging import WhatsAppClient
from shop.services.checkout_service import CheckoutService
from shop.services.ledger import BILL_NUMBER_STRATEGIES, BillingLedger
from shop.services.loyalty_service import LoyaltyEngine, ordinal
from shop.services.pdf_service import InvoiceRenderer
from shop.services.storage_service import StorageUploader
from shop.services.whatsapp_service import DeliveryCoordinator
from shop.storage import build_storage_backend

logger = logging.getLogger(__name__)

_services = None


@dataclass
class BillingServices:
    ledger: BillingLedger
    loyalty: LoyaltyEngine
    renderer: InvoiceRenderer
    uploader: StorageUploader
    delivery: DeliveryCoordinator
    checkout: CheckoutService


def loyalty_reminder(config):
    percent = f"{config.discount_percentage.normalize():f}"
    return f"Earn rewards! Get {percent}% off on every {ordinal(config.frequency)} cake purchase!"


def build_services(settings):
    strategy = getattr(settings, "BILL_NUMBER_STRATEGY", "daily_sequence")
    if strategy not in BILL_NUMBER_STRATEGIES:
        raise ConfigurationError(f"Unknown BILL_NUMBER_STRATEGY: {strategy}")

    loyalty_config = LoyaltyConfig.from_settings(settings)
    document_config = DocumentConfig.from_settings(settings)
    storage_config = StorageConfig.from_settings(settings)
    whatsapp_config = WhatsAppConfig.from_settings(settings)
    reminder = loyalty_reminder(loyalty_config)

    ledger = BillingLedger(numbering=BILL_NUMBER_STRATEGIES[strategy]())
    loyalty = LoyaltyEngine(loyalty_config, ledger)
    renderer = InvoiceRenderer(document_config, loyalty_reminder=reminder)
    uploader = StorageUploader(storage_config, build_storage_backend(storage_config))
    delivery = DeliveryCoordinator(
        whatsapp_config,
        WhatsAppClient(whatsapp_config),
        business_name=document_config.business_name,
        loyalty_reminder=reminder,
    )
    checkout = CheckoutService(loyalty, ledger, renderer, uploader,
                               category_keyword=loyalty_config.category_keyword)

    logger.info(
        f"Billing services ready: numbering={strategy}, storage={storage_config.backend} "
        f"(configured={uploader.is_configured}), whatsapp configured={delivery.is_configured}, "
        f"test_mode={delivery.test_mode}"
    )
    return BillingServices(ledger, loyalty, renderer, uploader, delivery, checkout)


def get_services():
    global _services
    if _services is None:
        from django.conf import settings
        _services = build_services(settings)
    return _services


def set_services(services):
    global _services
    _services = services
