"""
Error hierarchy for the finance core.

Routers translate these into HTTP responses; services raise them before any
write (validation, conflicts) or after rolling back (allocation, aggregation).
"""


class FinanceCoreError(Exception):
    """Base exception for all finance core errors"""

    status_code = 500


class ValidationError(FinanceCoreError):
    """Missing or invalid input; nothing was written"""

    status_code = 400


class NotFoundError(FinanceCoreError):
    """Referenced project, item or document does not exist"""

    status_code = 404

    def __init__(self, entity: str, entity_id) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(FinanceCoreError):
    """Request conflicts with current state, e.g. a PO was already issued"""

    status_code = 409


class AllocationError(FinanceCoreError):
    """
    Sequence counter write failed.

    The surrounding transaction is rolled back, so the whole operation is
    safe to retry.
    """

    status_code = 503

    def __init__(self, kind: str, period_prefix: str, message: str = "") -> None:
        self.kind = kind
        self.period_prefix = period_prefix
        super().__init__(
            message or f"Could not allocate a {kind} number for period {period_prefix}"
        )


class AggregationError(FinanceCoreError):
    """Budget summary recompute failed; the previous summary is still in place"""

    status_code = 500

    def __init__(self, project_id: int, message: str = "") -> None:
        self.project_id = project_id
        super().__init__(message or f"Budget summary recompute failed for project {project_id}")
