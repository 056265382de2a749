# shop/api/serializers/bill_serializer.py

from rest_framework import serializers

from shop.models import Bill, BillItem


class BillItemSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(read_only=True, allow_null=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BillItem
        fields = [
            'product_id', 'name', 'quantity', 'weight', 'price',
            'discount', 'discount_type', 'line_total',
        ]


class BillSerializer(serializers.ModelSerializer):
    items = BillItemSerializer(many=True, read_only=True)
    customer_info = serializers.DictField(read_only=True)

    class Meta:
        model = Bill
        fields = [
            'id', 'bill_number', 'items', 'customer_info',
            'subtotal', 'total_discount', 'total',
            'has_cake_items', 'loyalty_info', 'document_url', 'created_at',
        ]
        read_only_fields = fields
