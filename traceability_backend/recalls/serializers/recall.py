# recalls/serializers/recall.py

"""
RECALL SERIALIZERS

- Read shapes for Recall / RecallAffectedBatch / RecallNotification.
- Command serializers validate action payloads only; every write goes
  through recalls.services.recall_workflow.
"""

from rest_framework import serializers

from recalls.models import Recall, RecallAffectedBatch, RecallNotification


class RecallAffectedBatchSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="stock_batch.batch_code", read_only=True)
    stock_item_name = serializers.CharField(source="stock_batch.stock_item.name", read_only=True)
    batch_status = serializers.CharField(source="stock_batch.status", read_only=True)

    class Meta:
        model = RecallAffectedBatch
        fields = [
            "id",
            "recall",
            "stock_batch",
            "batch_code",
            "stock_item_name",
            "batch_status",
            "batch_type",
            "quantity_affected",
            "quantity_recovered",
            "unit",
            "action_taken",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RecallNotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = RecallNotification
        fields = [
            "id",
            "recall",
            "customer",
            "customer_name",
            "contact_email",
            "contact_phone",
            "notification_method",
            "notified_at",
            "response_received",
            "response_notes",
            "responded_at",
        ]
        read_only_fields = fields


class RecallSerializer(serializers.ModelSerializer):
    is_notification_overdue = serializers.BooleanField(read_only=True)
    notification_deadline = serializers.DateTimeField(read_only=True, allow_null=True)
    affected_batch_count = serializers.SerializerMethodField()

    class Meta:
        model = Recall
        fields = [
            "id",
            "company",
            "recall_code",
            "title",
            "recall_type",
            "severity",
            "status",
            "reason",
            "root_cause",
            "corrective_actions",
            "notes",
            "initiated_at",
            "resolved_at",
            "closed_at",
            "salsa_notified",
            "salsa_notified_at",
            "salsa_reference",
            "fsa_notified",
            "fsa_notified_at",
            "fsa_reference",
            "is_notification_overdue",
            "notification_deadline",
            "affected_batch_count",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "status",
            "root_cause",
            "corrective_actions",
            "initiated_at",
            "resolved_at",
            "closed_at",
            "salsa_notified",
            "salsa_notified_at",
            "salsa_reference",
            "fsa_notified",
            "fsa_notified_at",
            "fsa_reference",
            "created_by",
            "created_at",
            "updated_at",
        ]
        validators = []

    def get_affected_batch_count(self, obj) -> int:
        return obj.affected_batches.count()

    def validate(self, attrs):
        if self.instance is not None:
            for locked in ("company", "recall_code", "recall_type"):
                if locked in attrs and attrs[locked] != getattr(self.instance, locked):
                    raise serializers.ValidationError({locked: f"{locked} cannot be changed"})
            if "severity" in attrs and attrs["severity"] != self.instance.severity:
                raise serializers.ValidationError({"severity": "severity is immutable once set"})
            if self.instance.status == Recall.Status.CLOSED:
                raise serializers.ValidationError("A closed recall cannot be edited")
        return attrs


# ============================================================
# COMMANDS
# ============================================================

class RecallCreateSerializer(serializers.Serializer):
    company = serializers.UUIDField()
    recall_code = serializers.CharField(max_length=64, required=False, allow_blank=True)
    title = serializers.CharField(max_length=255)
    recall_type = serializers.ChoiceField(choices=Recall.RecallType.choices, default=Recall.RecallType.RECALL)
    severity = serializers.ChoiceField(choices=Recall.Severity.choices)
    reason = serializers.CharField()
    status = serializers.ChoiceField(
        choices=[Recall.Status.DRAFT, Recall.Status.ACTIVE],
        default=Recall.Status.DRAFT,
    )
    notes = serializers.CharField(required=False, allow_blank=True)


class TransitionSerializer(serializers.Serializer):
    target_status = serializers.ChoiceField(choices=Recall.Status.choices)


class InvestigationSerializer(serializers.Serializer):
    root_cause = serializers.CharField(required=False, allow_blank=True)
    corrective_actions = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class RegulatorNotifiedSerializer(serializers.Serializer):
    regulator = serializers.ChoiceField(choices=["salsa", "fsa"])
    reference = serializers.CharField(max_length=128, required=False, allow_blank=True)


class RegisterAffectedBatchSerializer(serializers.Serializer):
    stock_batch_id = serializers.UUIDField()
    batch_type = serializers.ChoiceField(choices=RecallAffectedBatch.BatchType.choices, required=False)
    quantity_affected = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, min_value=0)
    unit = serializers.CharField(max_length=16, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class AffectedBatchActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(
        choices=[
            RecallAffectedBatch.Action.QUARANTINED,
            RecallAffectedBatch.Action.DESTROYED,
            RecallAffectedBatch.Action.RETURNED,
            RecallAffectedBatch.Action.RELEASED,
        ],
        required=False,
    )
    quantity_recovered = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide action, quantity_recovered or notes")
        return attrs


class NotificationCreateSerializer(serializers.Serializer):
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    notification_method = serializers.ChoiceField(
        choices=RecallNotification.Method.choices,
        default=RecallNotification.Method.EMAIL,
    )
    contact_email = serializers.EmailField(required=False, allow_blank=True)
    contact_phone = serializers.CharField(max_length=40, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get("customer_id") and not (attrs.get("customer_name") or "").strip():
            raise serializers.ValidationError("customer_id or customer_name is required")
        return attrs


class NotificationResponseSerializer(serializers.Serializer):
    response_notes = serializers.CharField(required=False, allow_blank=True)
