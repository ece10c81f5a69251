# inventory/views/catalog.py

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from inventory.models import Company, Customer, StockItem, Supplier
from inventory.serializers import (
    CompanySerializer,
    CustomerSerializer,
    StockItemSerializer,
    SupplierSerializer,
)
from permissions.roles import (
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_VIEW,
    CAP_RECALL_MANAGE,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
)


class MasterDataViewSet(viewsets.ModelViewSet):
    """
    Shared policy for master data:
    - READ: inventory / trace / recall users (dropdowns need this)
    - WRITE: inventory.edit capability
    """

    permission_classes = [IsAuthenticated]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve"}:
            self.required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_TRACE_VIEW, CAP_RECALL_MANAGE}
            return [IsAuthenticated(), HasAnyCapability()]

        self.required_capability = CAP_INVENTORY_EDIT
        return [IsAuthenticated(), HasCapability()]


class CompanyViewSet(MasterDataViewSet):
    queryset = Company.objects.all().order_by("name")
    serializer_class = CompanySerializer


class SupplierViewSet(MasterDataViewSet):
    queryset = Supplier.objects.select_related("company").all()
    serializer_class = SupplierSerializer
    filterset_fields = ["company", "approval_status"]


class CustomerViewSet(MasterDataViewSet):
    queryset = Customer.objects.select_related("company").all()
    serializer_class = CustomerSerializer
    filterset_fields = ["company"]


class StockItemViewSet(MasterDataViewSet):
    queryset = StockItem.objects.select_related("company").all()
    serializer_class = StockItemSerializer
    filterset_fields = ["company", "item_type"]
