from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from behavior_points.db import get_db
from behavior_points.deps.auth import get_identity
from behavior_points.schemas.award import LeaderboardEntryOut
from behavior_points.services.award_service import leaderboard
from behavior_points.services.privilege_service import Identity


router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=list[LeaderboardEntryOut])
def read_leaderboard(
    limit: int = 10,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return leaderboard(db, limit=limit)
