from fastapi import HTTPException


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Not allowed for this account"):
        super().__init__(status_code=403, detail=detail)


class InvalidAmount(HTTPException):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(status_code=400, detail=f"points must be a positive integer (got {amount!r})")


class SubjectNotFound(HTTPException):
    def __init__(self, subject_id):
        self.subject_id = subject_id
        super().__init__(status_code=404, detail="User not found")


class CategoryNotFound(HTTPException):
    def __init__(self, category_id):
        self.category_id = category_id
        super().__init__(status_code=404, detail="Point category not found")


class CatalogItemNotFound(HTTPException):
    def __init__(self, kind: str, item_id):
        self.kind = kind
        self.item_id = item_id
        super().__init__(status_code=404, detail=f"{kind.capitalize()} not found")


class LedgerWriteFailed(HTTPException):
    """The store rejected a ledger insert; nothing downstream may run."""

    def __init__(self, subject_id, reason: str):
        self.subject_id = subject_id
        self.reason = reason
        super().__init__(status_code=503, detail=f"Points transaction could not be recorded: {reason}")


class CacheSyncFailed(HTTPException):
    """
    The ledger is fine but the cached balance could not be written.
    `points` carries the value recomputed from the ledger.
    """

    def __init__(self, subject_id, points: int, reason: str):
        self.subject_id = subject_id
        self.points = points
        self.reason = reason
        super().__init__(status_code=503, detail=f"Cached balance is stale: {reason}")


class AwardEvaluationFailed(HTTPException):
    """`evaluation` holds the awards committed before the failure, if any."""

    def __init__(self, subject_id, reason: str, evaluation=None):
        self.subject_id = subject_id
        self.reason = reason
        self.evaluation = evaluation
        super().__init__(status_code=500, detail=f"Award evaluation failed: {reason}")


class InvalidTransfer(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class InsufficientPoints(HTTPException):
    def __init__(self, subject_id, available: int, requested: int):
        self.subject_id = subject_id
        self.available = available
        self.requested = requested
        super().__init__(status_code=400, detail=f"Not enough points: {available} available, {requested} requested")


class InvalidBatch(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)
