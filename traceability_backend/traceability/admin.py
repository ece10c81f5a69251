from django.contrib import admin

from traceability.models import TraceExercise


@admin.register(TraceExercise)
class TraceExerciseAdmin(admin.ModelAdmin):
    list_display = (
        "stock_batch",
        "company",
        "started_at",
        "completed_at",
        "started_by",
        "backward_node_count",
        "forward_node_count",
    )
    list_filter = ("company",)
    readonly_fields = (
        "stock_batch",
        "company",
        "started_at",
        "completed_at",
        "started_by",
        "backward_node_count",
        "forward_node_count",
    )

    def has_add_permission(self, request):
        return False
