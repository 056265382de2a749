# billing_backend/urls.py
from django.contrib import admin
from django.urls import path, include

from core.views import HealthCheckView

urlpatterns = [
    # -------------------------
    # Admin Panel
    # -------------------------
    path('admin/', admin.site.urls),

    # -------------------------
    # Core (token login, health)
    # -------------------------
    path('api/core/', include('core.urls')),
    path('api/health/', HealthCheckView.as_view(), name='health'),

    # -------------------------
    # Reports & Storage operations
    # -------------------------
    path('api/reports/', include('reports.urls')),

    # -------------------------
    # Shop (Checkout, Bills, Delivery)
    # -------------------------
    path('api/', include('shop.urls')),  # Keep last: it has broad patterns
]
