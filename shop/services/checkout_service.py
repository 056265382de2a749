# shop/services/checkout_service.py
"""
Checkout use case: cart -> loyalty -> Bill -> invoice PDF -> storage.

Counting prior cake purchases and inserting the new bill happen in one
transaction while the customer's ``LoyaltyLock`` row is held, so two
concurrent checkouts for the same phone cannot both claim the same
loyalty slot. Rendering and upload run after the commit; their failures
are reported on the result and never undo the bill.
"""
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation

from django.db import transaction

from core.exceptions import ValidationError
from shop import pricing
from shop.models import LoyaltyLock, Product
from shop.services.ledger import BillDraft, LineItemDraft
from shop.services.loyalty_service import LoyaltyDiscount

logger = logging.getLogger(__name__)

FULLY_DISCOUNTED_MESSAGE = "No loyalty discount: cake items are already fully discounted"


@dataclass
class CartLine:
    product_id: int
    quantity: int = 1
    weight: Decimal | None = None
    discount: Decimal = pricing.ZERO
    discount_type: str = pricing.PERCENTAGE


@dataclass
class CheckoutRequest:
    customer_name: str
    customer_phone: str
    lines: list = field(default_factory=list)


@dataclass
class CheckoutResult:
    bill: object
    loyalty: LoyaltyDiscount
    next_discount_at: int
    next_purchase_number: int
    document_url: str | None = None
    document_error: str | None = None

    def loyalty_summary(self):
        return {
            "applied": self.loyalty.applied,
            "discount_amount": float(self.loyalty.discount_amount),
            "discount_percentage": float(self.loyalty.discount_percentage),
            "message": self.loyalty.message,
            "next_discount_at": self.next_discount_at,
            "purchase_number": self.loyalty.purchase_number or self.next_purchase_number,
        }


def _decimal(value, field_name):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name)


class CheckoutService:
    def __init__(self, loyalty, ledger, renderer, uploader, category_keyword="cake"):
        self.loyalty = loyalty
        self.ledger = ledger
        self.renderer = renderer
        self.uploader = uploader
        self.category_keyword = category_keyword

    # ===================== VALIDATION =====================
    def _validate(self, request):
        if not request.lines:
            raise ValidationError("Cart items are required", field="items")
        if not (request.customer_name or "").strip() or not (request.customer_phone or "").strip():
            raise ValidationError("Customer information is required", field="customer_info")

        for line in request.lines:
            if int(line.quantity) < 1:
                raise ValidationError("Quantity must be at least 1", field="quantity")
            if line.weight is not None and _decimal(line.weight, "weight") <= 0:
                raise ValidationError("Weight must be positive", field="weight")
            if _decimal(line.discount or 0, "discount") < 0:
                raise ValidationError("Discount cannot be negative", field="discount")
            if line.discount_type not in pricing.DISCOUNT_TYPES:
                raise ValidationError(f"Unknown discount type: {line.discount_type}", field="discount_type")

    def _load_products(self, lines):
        ids = {line.product_id for line in lines}
        products = Product.objects.select_related("category").in_bulk(ids)
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise ValidationError(f"Product not found: {line.product_id}", field="items")
            if not product.is_active:
                raise ValidationError(f"Product is not available: {product.name}", field="items")
        return products

    # ===================== PRICING =====================
    def build_line_items(self, lines, products):
        """Snapshot products into line items. Returns (items, cake_subtotal)."""
        items = []
        cake_subtotal = pricing.ZERO
        for line in lines:
            product = products[line.product_id]
            weight = _decimal(line.weight, "weight") if line.weight and product.is_weight_priced else None
            name = f"{product.name} ({weight.normalize():f}kg)" if weight else product.name
            item = LineItemDraft(
                name=name,
                price=pricing.to_money(product.price),
                quantity=int(line.quantity),
                weight=weight,
                discount=pricing.to_money(line.discount or 0),
                discount_type=line.discount_type,
                product=product,
            )
            items.append(item)
            if product.in_category(self.category_keyword):
                cake_subtotal += item.line_subtotal
                logger.debug(f"Loyalty-qualifying item: {product.name} - {item.line_subtotal}")
        return items, cake_subtotal

    def _cap_loyalty(self, loyalty, remaining):
        """Limit the reward to what item discounts left payable. A reward capped to zero is not applied."""
        if not loyalty.applied or loyalty.discount_amount <= remaining:
            return loyalty
        amount = max(remaining, pricing.ZERO)
        if amount > 0:
            return replace(loyalty, discount_amount=amount,
                           final_total=loyalty.final_total + loyalty.discount_amount - amount)
        return replace(
            loyalty,
            discount_amount=pricing.ZERO,
            discount_percentage=Decimal("0"),
            final_total=loyalty.final_total + loyalty.discount_amount,
            applied=False,
            message=FULLY_DISCOUNTED_MESSAGE,
        )

    # ===================== CHECKOUT =====================
    def checkout(self, request):
        self._validate(request)
        name = request.customer_name.strip()
        phone = request.customer_phone.strip()
        products = self._load_products(request.lines)
        items, cake_subtotal = self.build_line_items(request.lines, products)
        has_cake_items = any(item.product.in_category(self.category_keyword) for item in items)

        subtotal = pricing.to_money(sum((item.line_subtotal for item in items), pricing.ZERO))
        item_discounts = pricing.to_money(sum((item.line_discount for item in items), pricing.ZERO))

        with transaction.atomic():
            if has_cake_items:
                LoyaltyLock.objects.get_or_create(phone=phone)
                LoyaltyLock.objects.select_for_update().get(phone=phone)
                loyalty = self.loyalty.calculate_discount(cake_subtotal, phone)
            else:
                loyalty = LoyaltyDiscount(
                    discount_amount=pricing.ZERO,
                    discount_percentage=Decimal("0"),
                    final_total=pricing.ZERO,
                    applied=False,
                    message="No cake items in this purchase",
                )

            loyalty = self._cap_loyalty(loyalty, subtotal - item_discounts)
            loyalty_amount = loyalty.discount_amount
            total_discount = item_discounts + loyalty_amount
            logger.info(
                f"Checkout pricing for {phone}: subtotal {subtotal}, cake subtotal {cake_subtotal}, "
                f"item discounts {item_discounts}, loyalty {loyalty_amount}"
            )

            bill = self.ledger.create(BillDraft(
                customer_name=name,
                customer_phone=phone,
                items=items,
                subtotal=subtotal,
                total_discount=total_discount,
                total=subtotal - total_discount,
                has_cake_items=has_cake_items,
                loyalty_info={
                    "applied": loyalty.applied,
                    "discount_amount": float(loyalty_amount),
                    "discount_percentage": float(loyalty.discount_percentage),
                    "message": loyalty.message,
                    "purchase_number": loyalty.purchase_number,
                },
            ))

        status = self.loyalty.check_status(phone)
        document_url, document_error = self.publish_document(bill)
        return CheckoutResult(
            bill=bill,
            loyalty=loyalty,
            next_discount_at=status.next_discount_at,
            next_purchase_number=status.next_purchase_number,
            document_url=document_url,
            document_error=document_error,
        )

    # ===================== DOCUMENT =====================
    def publish_document(self, bill):
        """Render, upload and attach the invoice. Returns (url, error); never raises."""
        if not self.uploader.is_configured:
            logger.info(f"Storage not configured, skipping invoice upload for {bill.bill_number}")
            return None, "Storage not configured"

        scratch_path = None
        try:
            document = self.renderer.render(bill)
            scratch_path = self.renderer.write_scratch(document)
            upload = self.uploader.upload(document.content, bill.bill_number)
            if not upload.success:
                return None, upload.error
            self.ledger.attach_document_url(bill, upload.public_url)
            return bill.document_url, None
        except Exception as e:
            logger.error(f"Invoice publishing failed for {bill.bill_number}: {e}", exc_info=True)
            return None, "Invoice could not be generated"
        finally:
            if scratch_path is not None:
                self.renderer.remove_scratch(scratch_path)
