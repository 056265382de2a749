from shop.messaging.client import WhatsAppClient
from shop.messaging.errors import classify_whatsapp_error
from shop.messaging.phone import normalize_phone

__all__ = ["WhatsAppClient", "classify_whatsapp_error", "normalize_phone"]
