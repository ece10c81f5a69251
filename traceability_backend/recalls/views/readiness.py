# recalls/views/readiness.py

import uuid

from drf_spectacular.utils import OpenApiParameter, OpenApiTypes, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from inventory.models import Company
from inventory.services.exceptions import NotFoundError
from inventory.views.errors import domain_error_response
from permissions.roles import CAP_RECALL_MANAGE, CAP_REPORTS_VIEW, HasAnyCapability
from traceability.services.reconciliation import readiness_summary


class ReadinessView(APIView):
    """
    Recall readiness dashboard:
    - recalls by status, open recalls, overdue regulator notifications
    - batches by status, suppliers by approval status
    - latest mock recall exercise
    """

    permission_classes = [IsAuthenticated, HasAnyCapability]
    required_any_capabilities = {CAP_RECALL_MANAGE, CAP_REPORTS_VIEW}

    @extend_schema(
        parameters=[
            OpenApiParameter(name="company", type=OpenApiTypes.UUID, required=False, description="Scope to one company."),
        ],
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        company = None
        company_id = (request.query_params.get("company") or "").strip()
        if company_id:
            company = Company.objects.filter(pk=company_id).first() if _looks_like_uuid(company_id) else None
            if company is None:
                return domain_error_response(NotFoundError("Company", company_id))

        return Response(readiness_summary(company))


def _looks_like_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True
