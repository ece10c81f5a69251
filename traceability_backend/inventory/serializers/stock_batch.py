# inventory/serializers/stock_batch.py

"""
STOCK BATCH SERIALIZERS

Purpose:
- Read shape for batches, their movement ledger and dispatches.
- PATCH is metadata-only (dates). Quantities, status and provenance are
  service-managed and rejected here.
"""

from __future__ import annotations

from rest_framework import serializers

from inventory.models import BatchMovement, Delivery, DispatchRecord, StockBatch


class StockBatchSerializer(serializers.ModelSerializer):
    stock_item_name = serializers.CharField(source="stock_item.name", read_only=True)
    item_type = serializers.CharField(source="stock_item.item_type", read_only=True)
    provenance = serializers.CharField(read_only=True)
    supplier_name = serializers.SerializerMethodField()
    production_batch_code = serializers.CharField(
        source="production_batch.batch_code",
        read_only=True,
        default=None,
    )

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "company",
            "batch_code",
            "stock_item",
            "stock_item_name",
            "item_type",
            "quantity_received",
            "quantity_remaining",
            "unit",
            "status",
            "use_by_date",
            "best_before_date",
            "allergens",
            "provenance",
            "delivery_line",
            "supplier_name",
            "production_batch",
            "production_batch_code",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "company",
            "batch_code",
            "stock_item",
            "quantity_received",
            "quantity_remaining",
            "unit",
            "status",
            "allergens",
            "delivery_line",
            "production_batch",
            "created_at",
            "updated_at",
        ]

    def get_supplier_name(self, obj):
        line = obj.delivery_line
        if line is None:
            return None
        return line.delivery.supplier.name

    def validate(self, attrs):
        forbidden = {"quantity_received", "quantity_remaining", "status", "batch_code"}
        bad = sorted(set(self.initial_data or {}).intersection(forbidden))
        if bad:
            raise serializers.ValidationError(
                {"detail": f"Field(s) {bad} cannot be edited directly. Use batch actions."}
            )
        return attrs


class BatchMovementSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="batch.batch_code", read_only=True)

    class Meta:
        model = BatchMovement
        fields = [
            "id",
            "batch",
            "batch_code",
            "movement_type",
            "direction",
            "quantity",
            "unit",
            "reason",
            "reference_type",
            "reference_id",
            "performed_by",
            "created_at",
        ]
        read_only_fields = fields


class DispatchRecordSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="stock_batch.batch_code", read_only=True)

    class Meta:
        model = DispatchRecord
        fields = [
            "id",
            "stock_batch",
            "batch_code",
            "customer",
            "customer_name",
            "quantity",
            "unit",
            "dispatch_date",
            "reference",
            "created_at",
        ]
        read_only_fields = fields


class DeliverySerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)
    batches = serializers.SerializerMethodField()

    class Meta:
        model = Delivery
        fields = ["id", "supplier", "supplier_name", "delivery_date", "reference", "batches", "created_at"]
        read_only_fields = fields

    def get_batches(self, obj):
        batches = StockBatch.objects.filter(delivery_line__delivery=obj).select_related(
            "stock_item", "delivery_line__delivery__supplier"
        )
        return StockBatchSerializer(batches, many=True).data
