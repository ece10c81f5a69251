from .recall import (
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

__all__ = [
    "AffectedBatchActionSerializer",
    "InvestigationSerializer",
    "NotificationCreateSerializer",
    "NotificationResponseSerializer",
    "RecallAffectedBatchSerializer",
    "RecallCreateSerializer",
    "RecallNotificationSerializer",
    "RecallSerializer",
    "RegisterAffectedBatchSerializer",
    "RegulatorNotifiedSerializer",
    "TransitionSerializer",
]
