from django.apps import AppConfig


class ShopConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "shop"

    def ready(self):
        from django.conf import settings

        from shop.services import build_services, set_services

        # Invalid configuration fails start-up here rather than on first checkout
        set_services(build_services(settings))
