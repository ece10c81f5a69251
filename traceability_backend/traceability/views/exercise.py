# traceability/views/exercise.py

"""
MOCK RECALL EXERCISES

POST   /exercises/              start the clock for a batch
POST   /exercises/<id>/complete run both traces, stop the clock
GET    /exercises/              history (within_target per run)
"""

from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.views.errors import DOMAIN_ERRORS, domain_error_response
from permissions.roles import (
    CAP_RECALL_MANAGE,
    CAP_TRACE_VIEW,
    HasAnyCapability,
    HasCapability,
    user_label,
)
from traceability.models import TraceExercise
from traceability.serializers import StartExerciseSerializer, TraceExerciseSerializer
from traceability.services.exercises import complete_exercise, start_exercise


class TraceExerciseViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = TraceExerciseSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["company", "stock_batch"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve"}:
            self.required_any_capabilities = {CAP_TRACE_VIEW, CAP_RECALL_MANAGE}
            return [IsAuthenticated(), HasAnyCapability()]

        self.required_capability = CAP_RECALL_MANAGE
        return [IsAuthenticated(), HasCapability()]

    def get_queryset(self):
        return TraceExercise.objects.select_related("stock_batch").all()

    def create(self, request, *args, **kwargs):
        command = StartExerciseSerializer(data=request.data)
        command.is_valid(raise_exception=True)

        try:
            exercise = start_exercise(
                batch_id=command.validated_data["batch_id"],
                started_by=user_label(request.user),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(TraceExerciseSerializer(exercise).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        exercise = self.get_object()
        try:
            exercise = complete_exercise(exercise.id)
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)
        return Response(TraceExerciseSerializer(exercise).data, status=status.HTTP_200_OK)
