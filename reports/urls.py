from django.urls import path
from .views import (
    StorageCleanupView,
    StorageView,
    ThirtyDayRevenueView,
    TodayRevenueView,
    WeeklyRevenueView,
)

app_name = "reports"

urlpatterns = [
    path('revenue/today/', TodayRevenueView.as_view(), name='revenue_today'),
    path('revenue/weekly/', WeeklyRevenueView.as_view(), name='revenue_weekly'),
    path('revenue/30days/', ThirtyDayRevenueView.as_view(), name='revenue_30days'),
    path('storage/', StorageView.as_view(), name='storage'),
    path('storage/cleanup/', StorageCleanupView.as_view(), name='storage_cleanup'),
]
