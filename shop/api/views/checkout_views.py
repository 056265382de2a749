# shop/api/views/checkout_views.py

import logging

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.exceptions import PersistenceError, ValidationError
from shop.api.serializers.bill_serializer import BillSerializer
from shop.api.serializers.checkout_serializer import CheckoutSerializer, LoyaltyCheckSerializer
from shop.services import get_services

logger = logging.getLogger(__name__)


# ===================== CHECKOUT VIEWSET =====================
class CheckoutViewSet(viewsets.ViewSet):
    """
    Handles:
    - Cart checkout (loyalty discount, bill, invoice upload)
    - Today's sales summary
    - Loyalty status lookup for the POS screen
    """

    def create(self, request):
        serializer = CheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                "success": False,
                "message": "Invalid checkout request",
                "errors": serializer.errors,
            }, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = get_services().checkout.checkout(serializer.to_request())
        except ValidationError as e:
            return Response({"success": False, "message": e.message, "field": e.field},
                            status=status.HTTP_400_BAD_REQUEST)
        except PersistenceError as e:
            logger.error(f"Checkout failed: {e.message}", exc_info=True)
            return Response({"success": False, "message": e.message},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        bill = result.bill
        logger.info(f"Checkout completed: {bill.bill_number} total {bill.total}")
        return Response({
            "success": True,
            "message": "Checkout completed successfully!",
            "data": BillSerializer(bill).data,
            "loyalty": result.loyalty_summary(),
            "document_error": result.document_error,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Today's sales summary"""
        try:
            data = get_services().ledger.sales_summary(timezone.localdate())
            return Response({"success": True, "data": data})
        except Exception:
            logger.error("Sales summary failed:", exc_info=True)
            return Response({"success": False, "message": "Failed to fetch summary"},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @action(detail=False, methods=['post'], url_path='loyalty/check')
    def loyalty_check(self, request):
        """Loyalty status, potential discount on a cake subtotal and purchase history"""
        serializer = LoyaltyCheckSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"success": False, "message": "Phone number is required",
                             "errors": serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

        loyalty = get_services().loyalty
        phone = serializer.validated_data['phone']
        loyalty_status = loyalty.check_status(phone)
        history = loyalty.history(phone)

        data = {
            "status": loyalty_status.as_dict(),
            "loyalty_level": history.loyalty_level,
            "history": {
                "total_purchases": history.total_purchases,
                "total_spent": float(history.total_spent),
                "loyalty_discounts_received": history.loyalty_discounts_received,
                "next_discount_at": history.next_discount_at,
                "recent_bills": BillSerializer(history.recent_bills, many=True).data,
            },
        }
        cake_subtotal = serializer.validated_data.get('cake_subtotal')
        if cake_subtotal is not None:
            data["potential_discount"] = loyalty.calculate_discount(cake_subtotal, phone).as_dict()
        return Response({"success": True, "data": data})
