# production/serializers/production_batch.py

"""
PRODUCTION SERIALIZERS

- ProductionBatchSerializer: read shape (inputs + outputs nested) and
  create/patch of run metadata.
- Command serializers validate action payloads only; stock effects live in
  production.services.production_service.
"""

from rest_framework import serializers

from inventory.services.exceptions import IncompatibleUnitsError
from inventory.services.units import canonical_unit
from production.models import ProductionBatch, ProductionBatchInput


class ProductionBatchInputSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="stock_batch.batch_code", read_only=True)
    stock_item_name = serializers.CharField(source="stock_item.name", read_only=True)
    rework_source_batch_code = serializers.CharField(
        source="rework_source_batch.batch_code",
        read_only=True,
        default=None,
    )
    consumed_quantity = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)

    class Meta:
        model = ProductionBatchInput
        fields = [
            "id",
            "stock_batch",
            "batch_code",
            "stock_item",
            "stock_item_name",
            "planned_quantity",
            "actual_quantity",
            "consumed_quantity",
            "unit",
            "is_rework",
            "rework_source_batch",
            "rework_source_batch_code",
            "created_at",
        ]
        read_only_fields = fields


class ProductionOutputSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    batch_code = serializers.CharField(read_only=True)
    stock_item = serializers.UUIDField(source="stock_item_id", read_only=True)
    stock_item_name = serializers.CharField(source="stock_item.name", read_only=True)
    quantity_received = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)
    quantity_remaining = serializers.DecimalField(max_digits=14, decimal_places=3, read_only=True)
    unit = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    allergens = serializers.ListField(child=serializers.CharField(), read_only=True)


class ProductionBatchSerializer(serializers.ModelSerializer):
    inputs = ProductionBatchInputSerializer(many=True, read_only=True)
    outputs = ProductionOutputSerializer(source="output_batches", many=True, read_only=True)
    yield_percent = serializers.DecimalField(max_digits=8, decimal_places=2, read_only=True)
    unit = serializers.CharField(max_length=16, required=False)
    batch_code = serializers.CharField(max_length=128, required=False, allow_blank=True)

    class Meta:
        model = ProductionBatch
        # batch_code uniqueness is enforced by the service (code may be generated)
        validators = []
        fields = [
            "id",
            "company",
            "batch_code",
            "recipe_id",
            "production_date",
            "status",
            "planned_quantity",
            "actual_quantity",
            "unit",
            "yield_percent",
            "allergens",
            "notes",
            "inputs",
            "outputs",
            "started_at",
            "completed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "status",
            "actual_quantity",
            "yield_percent",
            "allergens",
            "inputs",
            "outputs",
            "started_at",
            "completed_at",
            "created_at",
            "updated_at",
        ]

    def validate_unit(self, value):
        try:
            return canonical_unit(value)
        except IncompatibleUnitsError as exc:
            raise serializers.ValidationError(str(exc))

    def validate(self, attrs):
        if self.instance is not None:
            locked = {"company", "batch_code"}
            bad = sorted(locked.intersection(attrs))
            if bad:
                raise serializers.ValidationError({"detail": f"Field(s) {bad} cannot be changed after creation."})
            if self.instance.is_locked:
                raise serializers.ValidationError(
                    {"detail": f"Production batch is '{self.instance.status}' and cannot be edited."}
                )
        return attrs


class AddInputSerializer(serializers.Serializer):
    stock_batch_id = serializers.UUIDField()
    planned_quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    actual_quantity = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, allow_null=True)
    unit = serializers.CharField(max_length=16, required=False, allow_blank=True)
    is_rework = serializers.BooleanField(required=False, default=False)
    rework_source_batch_id = serializers.UUIDField(required=False, allow_null=True)


class ActualQuantitySerializer(serializers.Serializer):
    actual_quantity = serializers.DecimalField(max_digits=14, decimal_places=3)


class RecordOutputSerializer(serializers.Serializer):
    stock_item_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    unit = serializers.CharField(max_length=16, required=False, allow_blank=True)
    batch_code = serializers.CharField(max_length=128, required=False, allow_blank=True)
    use_by_date = serializers.DateField(required=False, allow_null=True)
    best_before_date = serializers.DateField(required=False, allow_null=True)
    allergens = serializers.ListField(child=serializers.CharField(max_length=64), required=False)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
