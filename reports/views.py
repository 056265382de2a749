# reports/views.py

import logging
from datetime import timedelta

from django.utils import timezone
from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from shop.services import get_services

logger = logging.getLogger(__name__)


def _trend(today_total, yesterday_total):
    if yesterday_total > 0:
        change = (today_total - yesterday_total) / yesterday_total * 100
    elif today_total > 0:
        change = 100  # Revenue today and none yesterday
    else:
        change = 0
    change = round(float(change), 2)
    trend = "up" if change > 0 else "down" if change < 0 else "same"
    return change, trend


# ===================== REVENUE =====================
class TodayRevenueView(APIView):
    def get(self, request):
        try:
            today = timezone.localdate()
            yesterday = today - timedelta(days=1)
            summary = get_services().ledger.aggregate_revenue(yesterday, today, fill_missing_days=True)
            previous, current = summary.daily
            change, trend = _trend(current.total_revenue, previous.total_revenue)

            return Response({
                "success": True,
                "data": {
                    "date": today.isoformat(),
                    "total_revenue": float(current.total_revenue),
                    "total_bills": current.total_bills,
                    "comparison": {
                        "yesterday": float(previous.total_revenue),
                        "percentage_change": change,
                        "trend": trend,
                    },
                },
            })
        except Exception:
            logger.error("Today's revenue failed:", exc_info=True)
            return Response({"success": False, "message": "Error fetching revenue data"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class WeeklyRevenueView(APIView):
    def get(self, request):
        try:
            today = timezone.localdate()
            # Week runs Sunday to Saturday
            week_start = today - timedelta(days=(today.weekday() + 1) % 7)
            week_end = week_start + timedelta(days=6)
            summary = get_services().ledger.aggregate_revenue(week_start, week_end)

            return Response({
                "success": True,
                "data": {
                    "week_start": week_start.isoformat(),
                    "week_end": week_end.isoformat(),
                    "total_revenue": float(summary.total_revenue),
                    "total_bills": summary.total_bills,
                },
            })
        except Exception:
            logger.error("Weekly revenue failed:", exc_info=True)
            return Response({"success": False, "message": "Error fetching weekly revenue data"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ThirtyDayRevenueView(APIView):
    def get(self, request):
        try:
            today = timezone.localdate()
            start = today - timedelta(days=30)
            summary = get_services().ledger.aggregate_revenue(start, today, fill_missing_days=True)

            return Response({
                "success": True,
                "data": {
                    "daily_revenue": [day.as_dict() for day in summary.daily],
                    "summary": {
                        "total_revenue": float(summary.total_revenue),
                        "total_bills": summary.total_bills,
                        "average_daily_revenue": round(float(summary.total_revenue) / len(summary.daily), 2),
                        "period": f"{start.isoformat()} to {today.isoformat()}",
                    },
                },
            })
        except Exception:
            logger.error("30-day revenue failed:", exc_info=True)
            return Response({"success": False, "message": "Error fetching 30 days revenue data"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ===================== STORAGE =====================
class CleanupSerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, required=False)


class StorageView(APIView):
    def get(self, request):
        uploader = get_services().uploader
        if not uploader.is_configured:
            return Response({"success": False, "message": "Storage not configured"},
                            status=status.HTTP_503_SERVICE_UNAVAILABLE)

        listing = uploader.list_all()
        stats = uploader.stats()
        if not listing.success or not stats.success:
            return Response({"success": False, "message": "Error listing stored invoices",
                             "error": listing.error or stats.error},
                            status=status.HTTP_502_BAD_GATEWAY)

        return Response({
            "success": True,
            "data": {
                "files": [obj.as_dict() for obj in listing.files],
                "count": listing.count,
                "stats": stats.as_dict(),
            },
        })


class StorageCleanupView(APIView):
    def post(self, request):
        serializer = CleanupSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"success": False, "errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        uploader = get_services().uploader
        if not uploader.is_configured:
            return Response({"success": False, "message": "Storage not configured"},
                            status=status.HTTP_503_SERVICE_UNAVAILABLE)

        result = uploader.delete_older_than(serializer.validated_data.get('days'))
        if not result.success:
            return Response({"success": False, "message": "Cleanup failed", "error": result.error},
                            status=status.HTTP_502_BAD_GATEWAY)

        return Response({
            "success": True,
            "message": f"Deleted {result.deleted_count} expired invoice(s)",
            "data": {"deleted_count": result.deleted_count, "files": result.files},
        })
