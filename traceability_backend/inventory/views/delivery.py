# inventory/views/delivery.py

"""
DELIVERY VIEWSET

- GET: deliveries with the batches they created.
- POST: delivery intake (Delivery + lines + batches + RECEIVED movements)
  through inventory.services.stock_intake.intake_delivery.
"""

from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import Delivery, Supplier
from inventory.serializers import DeliverySerializer
from inventory.serializers.commands import DeliveryIntakeSerializer
from inventory.services.stock_intake import intake_delivery
from inventory.views.errors import DOMAIN_ERRORS, domain_error_response, error_response
from permissions.roles import (
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_VIEW,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
    user_label,
)


class DeliveryViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Delivery.objects.select_related("supplier").all()
    serializer_class = DeliverySerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["supplier", "delivery_date"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action == "create":
            self.required_capability = CAP_INVENTORY_EDIT
            return [IsAuthenticated(), HasCapability()]

        self.required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_TRACE_VIEW}
        return [IsAuthenticated(), HasAnyCapability()]

    def get_serializer_class(self):
        if self.action == "create":
            return DeliveryIntakeSerializer
        return DeliverySerializer

    def create(self, request, *args, **kwargs):
        """
        POST /api/inventory/deliveries/
        """
        command = DeliveryIntakeSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        supplier = Supplier.objects.filter(pk=v["supplier_id"]).first()
        if supplier is None:
            return error_response(
                code="not_found",
                message=f"Supplier not found: {v['supplier_id']}",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        try:
            result = intake_delivery(
                supplier=supplier,
                delivery_date=v["delivery_date"],
                reference=v.get("reference") or "",
                lines=[dict(line) for line in v["lines"]],
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(DeliverySerializer(result.delivery).data, status=status.HTTP_201_CREATED)
