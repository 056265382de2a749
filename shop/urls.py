# shop/urls.py
from rest_framework.routers import DefaultRouter

# ==== Import Billing Views ====
from shop.api.views import BillViewSet, CheckoutViewSet

# Create Default Router
router = DefaultRouter()

# ===================== CHECKOUT ROUTES =====================
router.register(r'checkout', CheckoutViewSet, basename='checkout')

# ===================== BILL ROUTES =====================
router.register(r'bills', BillViewSet, basename='bill')

# Final URL patterns
urlpatterns = router.urls
