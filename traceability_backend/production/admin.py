# production/admin.py

from django.contrib import admin

from production.models import ProductionBatch, ProductionBatchInput


class ProductionBatchInputInline(admin.TabularInline):
    model = ProductionBatchInput
    extra = 0
    fields = ("stock_batch", "planned_quantity", "actual_quantity", "unit", "is_rework", "rework_source_batch")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        # inputs consume stock: add them through the API / service layer
        return False


@admin.register(ProductionBatch)
class ProductionBatchAdmin(admin.ModelAdmin):
    list_display = ("batch_code", "company", "production_date", "status", "planned_quantity", "actual_quantity", "unit")
    readonly_fields = ("status", "actual_quantity", "allergens", "started_at", "completed_at", "created_at")
    list_filter = ("status", "production_date")
    search_fields = ("batch_code", "recipe_id")
    inlines = [ProductionBatchInputInline]
