# core/config.py
"""
Validated configuration for the billing services.

Each dataclass is built once from ``django.conf.settings`` when the shop
app is ready and handed to the component that needs it. Whether a feature
is configured is therefore known at start-up, not on first use.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _decimal(value, name):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class LoyaltyConfig:
    frequency: int = 3
    discount_percentage: Decimal = Decimal("10")
    category_keyword: str = "cake"

    def __post_init__(self):
        if int(self.frequency) < 1:
            raise ConfigurationError("LOYALTY_FREQUENCY must be a positive integer")
        if not Decimal("0") <= Decimal(self.discount_percentage) <= Decimal("100"):
            raise ConfigurationError("LOYALTY_DISCOUNT_PERCENTAGE must be between 0 and 100")
        if not (self.category_keyword or "").strip():
            raise ConfigurationError("LOYALTY_CATEGORY_KEYWORD must not be empty")

    @classmethod
    def from_settings(cls, settings):
        return cls(
            frequency=int(getattr(settings, "LOYALTY_FREQUENCY", 3)),
            discount_percentage=_decimal(
                getattr(settings, "LOYALTY_DISCOUNT_PERCENTAGE", 10), "LOYALTY_DISCOUNT_PERCENTAGE"
            ),
            category_keyword=getattr(settings, "LOYALTY_CATEGORY_KEYWORD", "cake").strip().lower(),
        )


@dataclass(frozen=True)
class DocumentConfig:
    scratch_dir: Path
    logo_url: str = ""
    business_name: str = "CakeRaft"
    business_tagline: str = "Artisan Cake Creations"
    scratch_max_age_seconds: int = 3600
    timeout: float = 30.0

    def __post_init__(self):
        if self.scratch_max_age_seconds <= 0:
            raise ConfigurationError("BILL_SCRATCH_MAX_AGE_SECONDS must be positive")

    @classmethod
    def from_settings(cls, settings):
        return cls(
            scratch_dir=Path(settings.BILL_SCRATCH_DIR),
            logo_url=getattr(settings, "BILL_LOGO_URL", "") or "",
            business_name=getattr(settings, "BUSINESS_NAME", "CakeRaft"),
            business_tagline=getattr(settings, "BUSINESS_TAGLINE", "Artisan Cake Creations"),
            scratch_max_age_seconds=int(getattr(settings, "BILL_SCRATCH_MAX_AGE_SECONDS", 3600)),
            timeout=float(getattr(settings, "PROVIDER_TIMEOUT_SECONDS", 30)),
        )


@dataclass(frozen=True)
class StorageConfig:
    backend: str = "supabase"
    url: str | None = None
    key: str | None = None
    key_type: str = "service_role"
    bucket: str = "invoices"
    retention_days: int = 30
    timeout: float = 30.0

    def __post_init__(self):
        if self.backend not in ("supabase", "memory"):
            raise ConfigurationError(f"Unknown STORAGE_BACKEND: {self.backend}")
        if self.retention_days < 1:
            raise ConfigurationError("PDF_RETENTION_DAYS must be at least 1")
        if not self.bucket:
            raise ConfigurationError("SUPABASE_BUCKET_NAME must not be empty")

    @property
    def is_configured(self):
        if self.backend == "memory":
            return True
        return bool(self.url and self.key)

    @classmethod
    def from_settings(cls, settings):
        # Service role key bypasses storage policies; the anon key is a fallback
        service_key = getattr(settings, "SUPABASE_SERVICE_ROLE_KEY", None)
        anon_key = getattr(settings, "SUPABASE_ANON_KEY", None)
        config = cls(
            backend=getattr(settings, "STORAGE_BACKEND", "supabase"),
            url=(getattr(settings, "SUPABASE_URL", None) or "").rstrip("/") or None,
            key=service_key or anon_key,
            key_type="service_role" if service_key else "anon",
            bucket=getattr(settings, "SUPABASE_BUCKET_NAME", "invoices"),
            retention_days=int(getattr(settings, "PDF_RETENTION_DAYS", 30)),
            timeout=float(getattr(settings, "PROVIDER_TIMEOUT_SECONDS", 30)),
        )
        if not config.is_configured:
            logger.warning("Storage credentials not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY). "
                           "Invoice uploads are disabled.")
        return config


@dataclass(frozen=True)
class WhatsAppConfig:
    api_token: str | None = None
    phone_number_id: str | None = None
    base_url: str = "https://graph.facebook.com/v18.0"
    template_name: str = "hello_world"
    template_language: str = "en_US"
    country_code: str = "91"
    test_mode: bool = False
    window_delay_seconds: float = 3.0
    test_mode_delay_seconds: float = 2.0
    timeout: float = 30.0

    def __post_init__(self):
        if not str(self.country_code).isdigit():
            raise ConfigurationError("DEFAULT_COUNTRY_CODE must contain digits only")
        if self.window_delay_seconds < 0 or self.test_mode_delay_seconds < 0:
            raise ConfigurationError("WhatsApp delays must not be negative")
        if self.timeout <= 0:
            raise ConfigurationError("PROVIDER_TIMEOUT_SECONDS must be positive")

    @property
    def is_configured(self):
        return bool(self.api_token and self.phone_number_id)

    @classmethod
    def from_settings(cls, settings):
        config = cls(
            api_token=getattr(settings, "WHATSAPP_API_TOKEN", None),
            phone_number_id=getattr(settings, "WHATSAPP_PHONE_NUMBER_ID", None),
            base_url=getattr(settings, "WHATSAPP_BASE_URL", cls.base_url).rstrip("/"),
            template_name=getattr(settings, "WHATSAPP_TEMPLATE_NAME", "hello_world"),
            template_language=getattr(settings, "WHATSAPP_TEMPLATE_LANGUAGE", "en_US"),
            country_code=str(getattr(settings, "DEFAULT_COUNTRY_CODE", "91")),
            test_mode=bool(getattr(settings, "WHATSAPP_TEST_MODE", False)),
            window_delay_seconds=float(getattr(settings, "WHATSAPP_WINDOW_DELAY_SECONDS", 3)),
            test_mode_delay_seconds=float(getattr(settings, "WHATSAPP_TEST_MODE_DELAY_SECONDS", 2)),
            timeout=float(getattr(settings, "PROVIDER_TIMEOUT_SECONDS", 30)),
        )
        if config.test_mode:
            logger.info("WhatsApp delivery running in TEST MODE, no messages will be sent.")
        elif not config.is_configured:
            logger.warning("WhatsApp API credentials not configured. Invoice delivery is disabled.")
        return config
