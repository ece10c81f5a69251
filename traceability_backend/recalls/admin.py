from django.contrib import admin

from recalls.models import Recall, RecallAffectedBatch, RecallNotification


class RecallAffectedBatchInline(admin.TabularInline):
    model = RecallAffectedBatch
    extra = 0
    can_delete = False
    readonly_fields = (
        "stock_batch",
        "batch_type",
        "quantity_affected",
        "quantity_recovered",
        "unit",
        "action_taken",
        "created_at",
    )
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


class RecallNotificationInline(admin.TabularInline):
    model = RecallNotification
    extra = 0
    can_delete = False
    readonly_fields = (
        "customer_name",
        "notification_method",
        "notified_at",
        "response_received",
        "responded_at",
    )
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Recall)
class RecallAdmin(admin.ModelAdmin):
    list_display = (
        "recall_code",
        "title",
        "company",
        "recall_type",
        "severity",
        "status",
        "initiated_at",
        "salsa_notified",
    )
    list_filter = ("status", "severity", "recall_type", "company")
    search_fields = ("recall_code", "title")
    readonly_fields = (
        "status",
        "severity",
        "initiated_at",
        "resolved_at",
        "closed_at",
        "salsa_notified_at",
        "fsa_notified_at",
        "created_by",
        "created_at",
    )
    inlines = [RecallAffectedBatchInline, RecallNotificationInline]

    def has_delete_permission(self, request, obj=None):
        return False
