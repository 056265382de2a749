from .bill_views import BillViewSet
from .checkout_views import CheckoutViewSet
