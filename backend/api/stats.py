from fastapi import APIRouter, Depends

from auth.utils import TokenIdentity, get_current_identity
from db.database import get_session_factory
from services.stats_service import compute_user_stats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
def get_stats(
    identity: TokenIdentity = Depends(get_current_identity),
    session_factory=Depends(get_session_factory),
):
    """Mood average, top symptoms, totals and current streak for the requester."""
    stats = compute_user_stats(session_factory, identity.user_id)
    return {"stats": stats.to_dict()}
