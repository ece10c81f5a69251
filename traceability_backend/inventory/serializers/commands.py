# inventory/serializers/commands.py

"""
Command serializers for inventory actions.

They do NOT touch the database. They only validate the request shape;
quantity / unit / date rules are enforced again by the services.
"""

from rest_framework import serializers


class DeliveryLineInputSerializer(serializers.Serializer):
    stock_item_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    unit = serializers.CharField(max_length=16, required=False, allow_blank=True)
    batch_code = serializers.CharField(max_length=128, required=False, allow_blank=True)
    use_by_date = serializers.DateField(required=False, allow_null=True)
    best_before_date = serializers.DateField(required=False, allow_null=True)
    allergens = serializers.ListField(
        child=serializers.CharField(max_length=64),
        required=False,
        allow_null=True,
    )


class DeliveryIntakeSerializer(serializers.Serializer):
    supplier_id = serializers.UUIDField()
    delivery_date = serializers.DateField()
    reference = serializers.CharField(max_length=128, required=False, allow_blank=True)
    lines = DeliveryLineInputSerializer(many=True, allow_empty=False)


class DispatchCommandSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    unit = serializers.CharField(max_length=16, required=False, allow_blank=True)
    dispatch_date = serializers.DateField()
    reference = serializers.CharField(max_length=128, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get("customer_id") and not (attrs.get("customer_name") or "").strip():
            raise serializers.ValidationError("customer_id or customer_name is required")
        return attrs


class BatchActionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
