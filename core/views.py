import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.views import ObtainAuthToken
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)


# ✅ TOKEN LOGIN
class LoginView(ObtainAuthToken):
    """Operator login. Returns a DRF token used by every protected route."""

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        logger.info(f"Operator logged in: {request.data.get('username')}")
        return response


# ✅ HEALTH CHECK API
class HealthCheckView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({
            "status": "OK",
            "message": "Billing System API is running",
            "timestamp": timezone.now().isoformat(),
        }, status=status.HTTP_200_OK)
