from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class DispatchResultOut(BaseModel):
    claimed: int
    delivered: int
    failed: int


class RequeueRequest(BaseModel):
    subjectId: Optional[UUID] = None


class RequeueResultOut(BaseModel):
    requeued: int
