# traceability/views/trace.py

"""
TRACE ENDPOINTS

GET /api/traceability/backward/?batch_id=<uuid>
GET /api/traceability/forward/?batch_id=<uuid>

Best-effort graph: a missing start batch is a 404, anything missing
further down is a dead end reported by the builder's logs.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiTypes, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from inventory.views.errors import DOMAIN_ERRORS, domain_error_response
from permissions.roles import CAP_RECALL_MANAGE, CAP_TRACE_VIEW, HasAnyCapability
from traceability.serializers import TraceQuerySerializer
from traceability.services.graph_builder import trace
from traceability.services.resolver import BACKWARD, FORWARD

TRACE_PARAMETERS = [
    OpenApiParameter(name="batch_id", type=OpenApiTypes.UUID, required=True, description="Start StockBatch id."),
    OpenApiParameter(name="max_depth", type=OpenApiTypes.INT, required=False, description="Hop limit override."),
]


class BaseTraceView(APIView):
    permission_classes = [IsAuthenticated, HasAnyCapability]
    required_any_capabilities = {CAP_TRACE_VIEW, CAP_RECALL_MANAGE}
    direction = BACKWARD

    def get(self, request):
        query = TraceQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        try:
            result = trace(
                query.validated_data["batch_id"],
                self.direction,
                max_depth=query.validated_data.get("max_depth"),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(result.as_dict())


class BackwardTraceView(BaseTraceView):
    """Finished product → production runs → raw materials → suppliers."""

    direction = BACKWARD

    @extend_schema(
        parameters=TRACE_PARAMETERS,
        description="Backward trace (origins) with mass balance.",
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        return super().get(request)


class ForwardTraceView(BaseTraceView):
    """Raw material → production runs → output batches → customers."""

    direction = FORWARD

    @extend_schema(
        parameters=TRACE_PARAMETERS,
        description="Forward trace (destinations) with mass balance.",
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        return super().get(request)
