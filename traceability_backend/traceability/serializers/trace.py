# traceability/serializers/trace.py

from rest_framework import serializers

from traceability.models import TraceExercise


class TraceQuerySerializer(serializers.Serializer):
    batch_id = serializers.UUIDField()
    max_depth = serializers.IntegerField(required=False, min_value=1, max_value=500)


class StartExerciseSerializer(serializers.Serializer):
    batch_id = serializers.UUIDField()


class TraceExerciseSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source="stock_batch.batch_code", read_only=True)
    elapsed_seconds = serializers.SerializerMethodField()
    within_target = serializers.BooleanField(read_only=True, allow_null=True)

    class Meta:
        model = TraceExercise
        fields = [
            "id",
            "company",
            "stock_batch",
            "batch_code",
            "started_at",
            "completed_at",
            "started_by",
            "backward_node_count",
            "forward_node_count",
            "elapsed_seconds",
            "within_target",
        ]
        read_only_fields = fields

    def get_elapsed_seconds(self, obj) -> int:
        return int(obj.elapsed.total_seconds())
