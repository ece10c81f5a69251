# production/views/production_batch.py

"""
PRODUCTION BATCH VIEWSET

Purpose:
- CRUD-ish surface for production runs.
- Actions drive production_service: start / complete / cancel,
  inputs (consume), outputs (produce), input actual quantity + removal.

RULES:
- Stock effects never happen in this file; every quantity change goes
  through the service layer.
- No delete endpoint: cancel a run instead.
"""

from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.services.exceptions import NotFoundError
from inventory.views.errors import DOMAIN_ERRORS, domain_error_response
from permissions.roles import (
    CAP_INVENTORY_VIEW,
    CAP_PRODUCTION_EDIT,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
    user_label,
)
from production.models import ProductionBatch
from production.serializers import ProductionBatchInputSerializer, ProductionBatchSerializer
from production.serializers.production_batch import (
    ActualQuantitySerializer,
    AddInputSerializer,
    CancelSerializer,
    RecordOutputSerializer,
)
from production.services import production_service


class ProductionBatchViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = ProductionBatchSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["company", "status", "production_date"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve"}:
            self.required_any_capabilities = {CAP_PRODUCTION_EDIT, CAP_INVENTORY_VIEW, CAP_TRACE_VIEW}
            return [IsAuthenticated(), HasAnyCapability()]

        self.required_capability = CAP_PRODUCTION_EDIT
        return [IsAuthenticated(), HasCapability()]

    def get_queryset(self):
        return ProductionBatch.objects.prefetch_related(
            "inputs__stock_batch",
            "inputs__stock_item",
            "inputs__rework_source_batch",
            "output_batches__stock_item",
        ).all()

    def _respond(self, production_batch, http_status=status.HTTP_200_OK):
        fresh = self.get_queryset().get(pk=production_batch.pk)
        return Response(ProductionBatchSerializer(fresh).data, status=http_status)

    # -------------------------------------------------
    # CREATE (service-backed)
    # -------------------------------------------------
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            pb = production_service.create_production_batch(
                company=v["company"],
                production_date=v["production_date"],
                batch_code=v.get("batch_code"),
                recipe_id=v.get("recipe_id") or "",
                planned_quantity=v.get("planned_quantity"),
                unit=v.get("unit") or "kg",
                notes=v.get("notes") or "",
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return self._respond(pb, status.HTTP_201_CREATED)

    # -------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------
    @action(detail=True, methods=["post"], url_path="start")
    def start(self, request, pk=None):
        pb = self.get_object()
        try:
            pb = production_service.start_production(pb.id)
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(pb)

    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        pb = self.get_object()
        try:
            pb = production_service.complete_production(pb.id, notes=request.data.get("notes"))
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(pb)

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        pb = self.get_object()
        command = CancelSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        try:
            pb = production_service.cancel_production(pb.id, reason=command.validated_data.get("reason") or "")
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(pb)

    # -------------------------------------------------
    # INPUTS / OUTPUTS
    # -------------------------------------------------
    @action(detail=True, methods=["post"], url_path="inputs")
    def add_input(self, request, pk=None):
        pb = self.get_object()
        command = AddInputSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            row = production_service.add_input(
                production_batch_id=pb.id,
                stock_batch_id=v["stock_batch_id"],
                planned_quantity=v["planned_quantity"],
                actual_quantity=v.get("actual_quantity"),
                unit=v.get("unit") or None,
                is_rework=v.get("is_rework", False),
                rework_source_batch_id=v.get("rework_source_batch_id"),
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(ProductionBatchInputSerializer(row).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["patch", "delete"], url_path=r"inputs/(?P<input_id>[0-9a-fA-F-]{32,36})")
    def input_detail(self, request, pk=None, input_id=None):
        pb = self.get_object()
        row = pb.inputs.filter(pk=input_id).first()
        if row is None:
            return domain_error_response(NotFoundError("ProductionBatchInput", input_id))

        if request.method == "DELETE":
            try:
                production_service.remove_input(row.id, performed_by=user_label(request.user))
            except DOMAIN_ERRORS as exc:
                return domain_error_response(exc)
            return Response(status=status.HTTP_204_NO_CONTENT)

        command = ActualQuantitySerializer(data=request.data)
        command.is_valid(raise_exception=True)
        try:
            row = production_service.record_actual_quantity(
                row.id,
                command.validated_data["actual_quantity"],
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(ProductionBatchInputSerializer(row).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="outputs")
    def record_output(self, request, pk=None):
        pb = self.get_object()
        command = RecordOutputSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            production_service.record_output(
                production_batch_id=pb.id,
                stock_item=v["stock_item_id"],
                quantity=v["quantity"],
                unit=v.get("unit") or None,
                batch_code=v.get("batch_code"),
                use_by_date=v.get("use_by_date"),
                best_before_date=v.get("best_before_date"),
                allergens=v.get("allergens"),
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return self._respond(pb, status.HTTP_201_CREATED)
