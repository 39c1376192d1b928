from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_profile
from ...models.profile import Profile
from ...services.dashboard_service import DashboardService
from ...services.storage_service import StorageService, get_storage
from ...schemas.dashboard import DashboardSummary

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

@router.get("/summary", response_model=DashboardSummary)
async def get_summary(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Everything the home screen shows in one call."""
    return DashboardService(db, storage).summary(profile)
