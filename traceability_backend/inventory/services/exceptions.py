# inventory/services/exceptions.py

"""
TRACEABILITY DOMAIN ERRORS

Centralized error taxonomy shared by inventory, production, traceability
and recall services.

Rules:
- NotFoundError is a dead end during traversal, a hard error in mutations.
- Mutation errors always propagate to the caller.
- NegativeBalanceError is carried as a warning on reconciliation results,
  it is not raised unless the caller asks for it.
"""


class TraceabilityError(Exception):
    """Base exception for all traceability service failures."""


class NotFoundError(TraceabilityError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class IncompatibleUnitsError(TraceabilityError):
    """Raised when converting between units of different dimensions."""


class InsufficientStockError(TraceabilityError):
    """Raised when a consumption exceeds the remaining batch quantity."""

    def __init__(self, batch_code: str, requested, available, unit: str = ""):
        self.batch_code = batch_code
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            f"Insufficient stock in batch {batch_code}. "
            f"Requested: {requested}{unit and ' ' + unit}, Available: {available}{unit and ' ' + unit}"
        )


class DuplicateBatchError(TraceabilityError):
    """Raised when a batch is registered to the same recall twice."""


class InvalidTransitionError(TraceabilityError):
    """Raised on an illegal state-machine move."""


class NegativeBalanceError(TraceabilityError):
    """Recovered quantity exceeds affected quantity (data entry error)."""
