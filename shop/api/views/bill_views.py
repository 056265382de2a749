# shop/api/views/bill_views.py

import io
import logging
from datetime import datetime

from django.http import FileResponse
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.exceptions import FailureReason
from shop import pricing
from shop.api.serializers.bill_serializer import BillSerializer
from shop.api.serializers.checkout_serializer import PhoneNumberSerializer
from shop.models import Bill, BillItem
from shop.services import get_services

logger = logging.getLogger(__name__)

# Delivery failures that mean "try again later" rather than "fix the request"
UNAVAILABLE_REASONS = {FailureReason.NOT_CONFIGURED, FailureReason.TRANSIENT}


def _parse_date(value, name):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValueError(f"Invalid {name} format. Use YYYY-MM-DD.")


def sample_bill(phone):
    """Unsaved bill used to check WhatsApp delivery end to end."""
    bill = Bill(
        bill_number=f"TEST-{int(timezone.now().timestamp() * 1000)}",
        customer_name="Test Customer",
        customer_phone=phone,
        subtotal=pricing.to_money(860),
        total_discount=pricing.to_money(20),
        total=pricing.to_money(840),
        created_at=timezone.now(),
    )
    items = [
        BillItem(name="Chocolate Birthday Cake", quantity=1, price=pricing.to_money(500)),
        BillItem(name="Vanilla Cupcakes (6 pcs)", quantity=2, price=pricing.to_money(180),
                 discount=pricing.to_money(20), discount_type=pricing.FIXED),
    ]
    return bill, items


# ===================== BILL VIEWSET =====================
class BillViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Bill.objects.prefetch_related('items')
    serializer_class = BillSerializer

    def list(self, request, *args, **kwargs):
        try:
            start = _parse_date(request.query_params.get('start_date'), 'start_date')
            end = _parse_date(request.query_params.get('end_date'), 'end_date')
        except ValueError as e:
            return Response({"success": False, "message": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            page = get_services().ledger.list_paginated(
                page=request.query_params.get('page') or 1,
                page_size=request.query_params.get('limit') or 10,
                search=(request.query_params.get('search') or '').strip() or None,
                start=start,
                end=end,
            )
        except ValueError:
            return Response({"success": False, "message": "page and limit must be integers"},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "success": True,
            "data": BillSerializer(page.items, many=True).data,
            "pagination": {
                "page": page.page,
                "limit": page.page_size,
                "total": page.total_count,
                "pages": page.pages,
            },
        })

    def retrieve(self, request, pk=None, *args, **kwargs):
        bill = get_services().ledger.find_by_id(pk)
        if bill is None:
            return Response({"success": False, "message": "Bill not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response({"success": True, "data": BillSerializer(bill).data})

    def _deliver(self, bill, phone, items=None):
        services = get_services()
        document = services.renderer.render(bill, items=items)
        scratch_path = services.renderer.write_scratch(document)
        try:
            return services.delivery.deliver(bill, phone, document.content, items=items)
        finally:
            services.renderer.remove_scratch(scratch_path)

    @staticmethod
    def _delivery_unavailable():
        delivery = get_services().delivery
        if delivery.test_mode or delivery.is_configured:
            return None
        return Response({
            "success": False,
            "message": "WhatsApp service not configured. Please contact administrator.",
            "details": delivery.status(),
        }, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    @staticmethod
    def _failure_status(result):
        if result.reason in UNAVAILABLE_REASONS:
            return status.HTTP_503_SERVICE_UNAVAILABLE
        return status.HTTP_400_BAD_REQUEST

    @action(detail=True, methods=['post'], url_path='send-whatsapp')
    def send_whatsapp(self, request, pk=None):
        """Send the bill PDF to a customer over WhatsApp"""
        serializer = PhoneNumberSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"success": False, "message": "Phone number is required",
                             "errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        bill = get_services().ledger.find_by_id(pk)
        if bill is None:
            return Response({"success": False, "message": "Bill not found"}, status=status.HTTP_404_NOT_FOUND)

        unavailable = self._delivery_unavailable()
        if unavailable is not None:
            return unavailable

        phone = serializer.validated_data['phone_number']
        try:
            result = self._deliver(bill, phone)
        except Exception as e:
            logger.error(f"send-whatsapp failed for bill {bill.bill_number}: {e}", exc_info=True)
            return Response({"success": False, "message": "Internal server error while sending WhatsApp message"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        if not result.success:
            return Response({
                "success": False,
                "message": "Failed to send bill via WhatsApp",
                "error": result.error,
                "reason": result.reason.value if result.reason else None,
                "attempt": result.attempt.as_dict() if result.attempt else None,
            }, status=self._failure_status(result))

        return Response({
            "success": True,
            "message": result.message,
            "data": {
                "bill_id": bill.pk,
                "bill_number": bill.bill_number,
                "phone_number": phone,
                **result.as_dict(),
            },
        }, status=status.HTTP_200_OK)

    @action(detail=True, methods=['get'], url_path='pdf', permission_classes=[AllowAny], authentication_classes=[])
    def pdf(self, request, pk=None):
        """Public PDF download for customers"""
        services = get_services()
        bill = services.ledger.find_by_id(pk)
        if bill is None:
            return Response({"success": False, "message": "Bill not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            document = services.renderer.render(bill)
        except Exception as e:
            logger.error(f"PDF generation failed for bill {bill.bill_number}: {e}", exc_info=True)
            return Response({"success": False, "message": "Error generating PDF"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return FileResponse(
            io.BytesIO(document.content),
            as_attachment=True,
            filename=services.delivery.document_filename(bill),
            content_type="application/pdf",
        )

    @action(detail=False, methods=['get'], url_path='whatsapp/status')
    def whatsapp_status(self, request):
        return Response({
            "success": True,
            "message": "WhatsApp service status",
            "data": get_services().delivery.status(),
        })

    @action(detail=False, methods=['post'], url_path='whatsapp/test')
    def whatsapp_test(self, request):
        """Send a sample bill to check the WhatsApp configuration"""
        serializer = PhoneNumberSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"success": False, "message": "Phone number is required for test",
                             "errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        unavailable = self._delivery_unavailable()
        if unavailable is not None:
            return unavailable

        bill, items = sample_bill(serializer.validated_data['phone_number'])
        try:
            result = self._deliver(bill, bill.customer_phone, items=items)
        except Exception as e:
            logger.error(f"WhatsApp test failed: {e}", exc_info=True)
            return Response({"success": False, "message": "Error sending test message"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        if not result.success:
            return Response({
                "success": False,
                "message": "Failed to send test bill",
                "error": result.error,
                "reason": result.reason.value if result.reason else None,
            }, status=self._failure_status(result))

        return Response({
            "success": True,
            "message": "Test bill sent successfully via WhatsApp",
            "data": result.as_dict(),
        })
