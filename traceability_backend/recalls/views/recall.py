# recalls/views/recall.py

"""
RECALL VIEWSET

Purpose:
- Recall CRUD-ish surface plus workflow actions.
- Every state change goes through recalls.services.recall_workflow.

RULES:
- No delete endpoint: recalls are compliance records.
- Severity, company and recall_code are fixed after creation.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiTypes, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.models import Company
from inventory.services.exceptions import NotFoundError
from inventory.views.errors import DOMAIN_ERRORS, domain_error_response
from permissions.roles import (
    CAP_RECALL_MANAGE,
    CAP_REPORTS_VIEW,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
    user_label,
)
from recalls.models import Recall
from recalls.serializers import (
    AffectedBatchActionSerializer,
    InvestigationSerializer,
    NotificationCreateSerializer,
    NotificationResponseSerializer,
    RecallAffectedBatchSerializer,
    RecallCreateSerializer,
    RecallNotificationSerializer,
    RecallSerializer,
    RegisterAffectedBatchSerializer,
    RegulatorNotifiedSerializer,
    TransitionSerializer,
)
from recalls.services import recall_workflow
from recalls.services.recall_report import build_report, recall_trace
from traceability.services.reconciliation import recall_balance

UUID_PATTERN = r"[0-9a-fA-F-]{32,36}"

READ_ACTIONS = {
    "list",
    "retrieve",
    "affected_batches",
    "notifications",
    "balance",
    "report",
    "trace",
}


class RecallViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = RecallSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["company", "status", "severity", "recall_type"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in READ_ACTIONS and self.request.method == "GET":
            self.required_any_capabilities = {CAP_RECALL_MANAGE, CAP_TRACE_VIEW, CAP_REPORTS_VIEW}
            return [IsAuthenticated(), HasAnyCapability()]

        self.required_capability = CAP_RECALL_MANAGE
        return [IsAuthenticated(), HasCapability()]

    def get_queryset(self):
        return Recall.objects.prefetch_related("affected_batches").all()

    def _respond(self, recall, http_status=status.HTTP_200_OK):
        return Response(RecallSerializer(recall).data, status=http_status)

    # -------------------------------------------------
    # CREATE (service-backed)
    # -------------------------------------------------
    def create(self, request, *args, **kwargs):
        command = RecallCreateSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        company = Company.objects.filter(pk=v["company"]).first()
        if company is None:
            return domain_error_response(NotFoundError("Company", v["company"]))

        try:
            recall = recall_workflow.create_recall(
                company=company,
                recall_code=v.get("recall_code"),
                title=v["title"],
                recall_type=v["recall_type"],
                severity=v["severity"],
                reason=v["reason"],
                status=v["status"],
                notes=v.get("notes") or "",
                created_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return self._respond(recall, status.HTTP_201_CREATED)

    # -------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request, pk=None):
        recall = self.get_object()
        command = TransitionSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            recall = recall_workflow.transition_recall(
                recall.id,
                target_status=command.validated_data["target_status"],
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(recall)

    @action(detail=True, methods=["post"], url_path="investigation")
    def investigation(self, request, pk=None):
        recall = self.get_object()
        command = InvestigationSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            recall = recall_workflow.update_investigation(
                recall.id,
                root_cause=v.get("root_cause"),
                corrective_actions=v.get("corrective_actions"),
                notes=v.get("notes"),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(recall)

    @action(detail=True, methods=["post"], url_path="regulator-notified")
    def regulator_notified(self, request, pk=None):
        recall = self.get_object()
        command = RegulatorNotifiedSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            recall = recall_workflow.mark_regulator_notified(
                recall.id,
                regulator=command.validated_data["regulator"],
                reference=command.validated_data.get("reference") or "",
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return self._respond(recall)

    # -------------------------------------------------
    # AFFECTED BATCHES
    # -------------------------------------------------
    @action(detail=True, methods=["get", "post"], url_path="affected-batches")
    def affected_batches(self, request, pk=None):
        recall = self.get_object()

        if request.method == "GET":
            rows = recall.affected_batches.select_related("stock_batch__stock_item")
            data = RecallAffectedBatchSerializer(rows, many=True).data
            return Response({"count": len(data), "results": data})

        command = RegisterAffectedBatchSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            result = recall_workflow.register_affected_batch(
                recall_id=recall.id,
                stock_batch_id=v["stock_batch_id"],
                batch_type=v.get("batch_type"),
                quantity_affected=v.get("quantity_affected"),
                unit=v.get("unit") or None,
                notes=v.get("notes") or "",
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(
            {
                "affected_batch": RecallAffectedBatchSerializer(result.affected_batch).data,
                "quarantined": result.quarantined,
                "discrepancy": result.discrepancy or None,
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["delete"], url_path=rf"affected-batches/(?P<affected_id>{UUID_PATTERN})")
    def affected_batch_detail(self, request, pk=None, affected_id=None):
        recall = self.get_object()
        try:
            recall_workflow.remove_affected_batch(
                recall_id=recall.id,
                affected_batch_id=affected_id,
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path=rf"affected-batches/(?P<affected_id>{UUID_PATTERN})/action")
    def affected_batch_action(self, request, pk=None, affected_id=None):
        recall = self.get_object()
        command = AffectedBatchActionSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            row = recall_workflow.set_affected_batch_action(
                recall_id=recall.id,
                affected_batch_id=affected_id,
                action=v.get("action"),
                quantity_recovered=v.get("quantity_recovered"),
                notes=v.get("notes"),
                performed_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(RecallAffectedBatchSerializer(row).data, status=status.HTTP_200_OK)

    # -------------------------------------------------
    # NOTIFICATIONS
    # -------------------------------------------------
    @action(detail=True, methods=["get", "post"], url_path="notifications")
    def notifications(self, request, pk=None):
        recall = self.get_object()

        if request.method == "GET":
            data = RecallNotificationSerializer(recall.notifications.all(), many=True).data
            return Response({"count": len(data), "results": data})

        command = NotificationCreateSerializer(data=request.data)
        command.is_valid(raise_exception=True)
        v = command.validated_data

        try:
            notification = recall_workflow.record_notification(
                recall_id=recall.id,
                customer=v.get("customer_id"),
                customer_name=v.get("customer_name") or "",
                notification_method=v["notification_method"],
                contact_email=v.get("contact_email") or "",
                contact_phone=v.get("contact_phone") or "",
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(RecallNotificationSerializer(notification).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path=rf"notifications/(?P<notification_id>{UUID_PATTERN})/response")
    def notification_response(self, request, pk=None, notification_id=None):
        recall = self.get_object()
        command = NotificationResponseSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            notification = recall_workflow.record_response(
                recall_id=recall.id,
                notification_id=notification_id,
                response_notes=command.validated_data.get("response_notes") or "",
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(RecallNotificationSerializer(notification).data, status=status.HTTP_200_OK)

    # -------------------------------------------------
    # READ MODELS
    # -------------------------------------------------
    @extend_schema(responses={200: OpenApiTypes.OBJECT}, description="Affected vs recovered vs unaccounted.")
    @action(detail=True, methods=["get"], url_path="balance")
    def balance(self, request, pk=None):
        recall = self.get_object()
        return Response(recall_balance(recall.id).as_dict())

    @extend_schema(responses={200: OpenApiTypes.OBJECT}, description="Payload for the recall report document.")
    @action(detail=True, methods=["get"], url_path="report")
    def report(self, request, pk=None):
        recall = self.get_object()
        return Response(build_report(recall.id))

    @extend_schema(responses={200: OpenApiTypes.OBJECT}, description="Forward trace of every affected batch.")
    @action(detail=True, methods=["get"], url_path="trace")
    def trace(self, request, pk=None):
        recall = self.get_object()
        return Response(recall_trace(recall.id))
