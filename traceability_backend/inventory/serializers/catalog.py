# inventory/serializers/catalog.py

"""
MASTER DATA SERIALIZERS

Company, supplier, customer and stock item: plain CRUD records that the
traceability graph hangs off. No quantities live here.
"""

from rest_framework import serializers

from inventory.models import Company, Customer, StockItem, Supplier
from inventory.services.exceptions import IncompatibleUnitsError
from inventory.services.units import canonical_unit, normalize_allergens


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ["id", "name", "created_at"]
        read_only_fields = ["id", "created_at"]


class SupplierSerializer(serializers.ModelSerializer):
    is_approved = serializers.BooleanField(read_only=True)
    delivery_count = serializers.IntegerField(source="deliveries.count", read_only=True)

    class Meta:
        model = Supplier
        fields = [
            "id",
            "company",
            "name",
            "approval_status",
            "is_approved",
            "delivery_count",
            "created_at",
        ]
        read_only_fields = ["id", "is_approved", "delivery_count", "created_at"]


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "company", "name", "contact_email", "contact_phone", "created_at"]
        read_only_fields = ["id", "created_at"]


class StockItemSerializer(serializers.ModelSerializer):
    unit = serializers.CharField(max_length=16, required=False)

    class Meta:
        model = StockItem
        fields = ["id", "company", "name", "item_type", "unit", "allergens", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_unit(self, value):
        try:
            return canonical_unit(value)
        except IncompatibleUnitsError as exc:
            raise serializers.ValidationError(str(exc))

    def validate_allergens(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("allergens must be a list of strings")
        return normalize_allergens(value)
