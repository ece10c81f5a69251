# inventory/views/stock_batch.py

"""
STOCK BATCH VIEWSET

Purpose:
- Read batches + their movement ledger and dispatches.
- Controlled state operations through inventory.services.batch_state:
  quarantine / release / destroy / return-to-supplier.
- Dispatch recording through inventory.services.dispatch.

RULES:
- No create endpoint: batches come from delivery intake or production output.
- PATCH is metadata-only (use-by / best-before dates).
- No delete endpoint: batches are audit artifacts.
"""

from __future__ import annotations

from datetime import timedelta

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import Customer, StockBatch
from inventory.serializers import (
    BatchMovementSerializer,
    DispatchRecordSerializer,
    StockBatchSerializer,
)
from inventory.serializers.commands import BatchActionSerializer, DispatchCommandSerializer
from inventory.services import batch_state
from inventory.services.dispatch import record_dispatch
from inventory.views.errors import DOMAIN_ERRORS, domain_error_response, error_response
from permissions.roles import (
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_VIEW,
    CAP_RECALL_MANAGE,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
    user_label,
)


class StockBatchViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = StockBatchSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["company", "stock_item", "status", "unit"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve", "movements", "dispatches", "expiring_soon"}:
            self.required_any_capabilities = {
                CAP_INVENTORY_VIEW,
                CAP_TRACE_VIEW,
                CAP_RECALL_MANAGE,
            }
            return [IsAuthenticated(), HasAnyCapability()]

        if self.action in {"partial_update", "update", "dispatch_batch"}:
            self.required_capability = CAP_INVENTORY_EDIT
            return [IsAuthenticated(), HasCapability()]

        if self.action in {"quarantine", "release", "destroy_batch", "return_to_supplier"}:
            self.required_capability = CAP_INVENTORY_ADJUST
            return [IsAuthenticated(), HasCapability()]

        return [IsAuthenticated()]

    def get_queryset(self):
        qs = StockBatch.objects.select_related(
            "stock_item",
            "production_batch",
            "delivery_line__delivery__supplier",
        ).order_by("created_at")

        code = (self.request.query_params.get("batch_code") or "").strip()
        if code:
            qs = qs.filter(batch_code__icontains=code)

        return qs

    # -------------------------------------------------
    # UPDATE (restricted)
    # -------------------------------------------------
    def update(self, request, *args, **kwargs):
        if not kwargs.get("partial"):
            return error_response(
                code="method_not_allowed",
                message="PUT is not allowed for StockBatch. Use PATCH for dates only.",
                http_status=status.HTTP_405_METHOD_NOT_ALLOWED,
            )
        return super().update(request, *args, **kwargs)

    # -------------------------------------------------
    # READ: ledger + dispatches
    # -------------------------------------------------
    @action(detail=True, methods=["get"], url_path="movements")
    def movements(self, request, pk=None):
        batch = self.get_object()
        data = BatchMovementSerializer(batch.movements.order_by("created_at"), many=True).data
        return Response({"count": len(data), "results": data})

    @action(detail=True, methods=["get"], url_path="dispatches")
    def dispatches(self, request, pk=None):
        batch = self.get_object()
        data = DispatchRecordSerializer(batch.dispatches.all(), many=True).data
        return Response({"count": len(data), "results": data})

    @action(detail=False, methods=["get"], url_path="alerts/expiring-soon")
    def expiring_soon(self, request):
        raw_days = (request.query_params.get("days") or "7").strip()
        try:
            days = int(raw_days)
            if days < 0:
                raise ValueError
        except ValueError:
            return error_response(
                code="validation_error",
                message="days must be a non-negative integer",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        today = timezone.localdate()
        qs = self.get_queryset().filter(
            status=StockBatch.Status.ACTIVE,
            use_by_date__gte=today,
            use_by_date__lte=today + timedelta(days=days),
        )
        data = self.get_serializer(qs, many=True).data
        return Response({"count": len(data), "results": data})

    # -------------------------------------------------
    # STATE ACTIONS
    # -------------------------------------------------
    def _run_state_action(self, request, operation, default_reason: str):
        batch = self.get_object()
        command = BatchActionSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            outcome = operation(
                batch.id,
                reason=command.validated_data.get("reason") or default_reason,
                reference_type="manual",
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(self.get_serializer(outcome.batch).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="quarantine")
    def quarantine(self, request, pk=None):
        batch = self.get_object()
        command = BatchActionSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        outcome = batch_state.quarantine(
            batch.id,
            reason=command.validated_data.get("reason") or "manual quarantine",
            reference_type="manual",
            performed_by=user_label(request.user),
        )
        return Response(
            {
                "applied": outcome.applied,
                "detail": outcome.detail,
                "batch": self.get_serializer(outcome.batch).data,
            },
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"], url_path="release")
    def release(self, request, pk=None):
        return self._run_state_action(request, batch_state.release, "released from quarantine")

    @action(detail=True, methods=["post"], url_path="destroy")
    def destroy_batch(self, request, pk=None):
        return self._run_state_action(request, batch_state.destroy, "destroyed")

    @action(detail=True, methods=["post"], url_path="return-to-supplier")
    def return_to_supplier(self, request, pk=None):
        return self._run_state_action(request, batch_state.mark_returned, "returned to supplier")

    # -------------------------------------------------
    # DISPATCH
    # -------------------------------------------------
    @action(detail=True, methods=["post"], url_path="dispatch")
    def dispatch_batch(self, request, pk=None):
        batch = self.get_object()
        command = DispatchCommandSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        customer = None
        if v.get("customer_id"):
            customer = Customer.objects.filter(pk=v["customer_id"]).first()
            if customer is None:
                return error_response(
                    code="not_found",
                    message=f"Customer not found: {v['customer_id']}",
                    http_status=status.HTTP_404_NOT_FOUND,
                )

        try:
            record = record_dispatch(
                batch=batch,
                customer=customer,
                customer_name=v.get("customer_name") or "",
                quantity=v["quantity"],
                unit=v.get("unit") or None,
                dispatch_date=v["dispatch_date"],
                reference=v.get("reference") or "",
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(DispatchRecordSerializer(record).data, status=status.HTTP_201_CREATED)
