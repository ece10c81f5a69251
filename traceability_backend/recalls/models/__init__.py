from .recall import Recall, RecallAffectedBatch, RecallNotification

__all__ = ["Recall", "RecallAffectedBatch", "RecallNotification"]
