# inventory/admin.py

"""
Admin rules (audit-safe inventory):

- Batches are created by delivery intake or production output, never here.
- quantity_remaining / status are service-managed: read-only in admin.
- BatchMovement is the ledger: fully read-only, no add, no delete.
"""

from django.contrib import admin

from inventory.models import (
    BatchMovement,
    Company,
    Customer,
    Delivery,
    DispatchRecord,
    StockBatch,
    StockItem,
    Supplier,
)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    search_fields = ("name",)


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "approval_status", "created_at")
    list_filter = ("approval_status", "company")
    search_fields = ("name",)


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("supplier", "delivery_date", "reference", "created_at")
    list_filter = ("delivery_date",)
    search_fields = ("reference", "supplier__name")


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "item_type", "unit")
    list_filter = ("item_type", "company")
    search_fields = ("name",)


# ======================================================
# STOCK BATCH ADMIN
# ======================================================


@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    list_display = (
        "batch_code",
        "stock_item",
        "status",
        "quantity_received",
        "quantity_remaining",
        "unit",
        "use_by_date",
    )
    readonly_fields = (
        "company",
        "stock_item",
        "quantity_received",
        "quantity_remaining",
        "unit",
        "status",
        "delivery_line",
        "production_batch",
        "created_at",
        "updated_at",
    )
    search_fields = ("batch_code", "stock_item__name")
    list_filter = ("status", "company")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ======================================================
# MOVEMENT LEDGER ADMIN
# ======================================================


@admin.register(BatchMovement)
class BatchMovementAdmin(admin.ModelAdmin):
    list_display = ("batch", "movement_type", "direction", "quantity", "unit", "reference_type", "created_at")
    list_filter = ("movement_type", "direction", "created_at")
    search_fields = ("batch__batch_code", "reference_id")

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "contact_email", "contact_phone")
    search_fields = ("name", "contact_email")


@admin.register(DispatchRecord)
class DispatchRecordAdmin(admin.ModelAdmin):
    list_display = ("stock_batch", "customer_name", "quantity", "unit", "dispatch_date")
    list_filter = ("dispatch_date",)
    search_fields = ("customer_name", "stock_batch__batch_code")
