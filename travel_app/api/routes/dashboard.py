from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_app.core.context import SessionContext
from travel_app.core.dependencies import get_current_session, get_db
from travel_app.schemas.common import envelope
from travel_app.services.reporting_service import dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats")
def get_dashboard_stats(ctx: SessionContext = Depends(get_current_session), db: Session = Depends(get_db)):
    return envelope("Dashboard stats retrieved successfully", dashboard_stats(db, ctx))
