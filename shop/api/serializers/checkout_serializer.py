# shop/api/serializers/checkout_serializer.py

from rest_framework import serializers

from shop import pricing
from shop.services.checkout_service import CartLine, CheckoutRequest


class CartItemSerializer(serializers.Serializer):
    """One cart line. Accepts ``product_id`` or the nested ``product: {id}`` the POS client sends."""

    product_id = serializers.IntegerField(required=False)
    product = serializers.DictField(required=False, write_only=True)
    quantity = serializers.IntegerField(min_value=1, default=1)
    weight = serializers.DecimalField(max_digits=7, decimal_places=3, required=False, allow_null=True,
                                      min_value=0)
    discount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, default=0,
                                        min_value=0)
    discount_type = serializers.ChoiceField(choices=pricing.DISCOUNT_TYPES, default=pricing.PERCENTAGE)

    def validate(self, data):
        product_id = data.get('product_id')
        if product_id is None:
            product = data.get('product') or {}
            product_id = product.get('id') or product.get('_id')
        if product_id is None:
            raise serializers.ValidationError({"product_id": "product_id is required for each item."})
        try:
            data['product_id'] = int(product_id)
        except (TypeError, ValueError):
            raise serializers.ValidationError({"product_id": f"Invalid product id: {product_id}"})
        if data.get('weight') is not None and data['weight'] <= 0:
            raise serializers.ValidationError({"weight": "Weight must be greater than 0."})
        return data


class CustomerInfoSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, trim_whitespace=True)
    phone = serializers.CharField(max_length=20, trim_whitespace=True)


class CheckoutSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True)
    customer_info = CustomerInfoSerializer()

    def validate_items(self, items):
        if not items:
            raise serializers.ValidationError("Cart items are required")
        return items

    def to_request(self):
        data = self.validated_data
        return CheckoutRequest(
            customer_name=data['customer_info']['name'],
            customer_phone=data['customer_info']['phone'],
            lines=[
                CartLine(
                    product_id=item['product_id'],
                    quantity=item['quantity'],
                    weight=item.get('weight'),
                    discount=item.get('discount') or 0,
                    discount_type=item['discount_type'],
                )
                for item in data['items']
            ],
        )


class LoyaltyCheckSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=20, trim_whitespace=True)
    cake_subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)


class PhoneNumberSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=20, trim_whitespace=True)

    def validate_phone_number(self, value):
        digits = "".join(ch for ch in value if ch.isdigit())
        if len(digits) < 10:
            raise serializers.ValidationError("Phone number must have at least 10 digits")
        return value
