from fastapi import APIRouter, Depends, HTTPException

from expense_tracker.core.errors import PersistenceFailure
from expense_tracker.db.dal import Database
from expense_tracker.routers.expenses import get_db

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness plus a round trip to the store")
async def health(db: Database = Depends(get_db)):
    try:
        db.ping()
        version = db.schema_version()
    except PersistenceFailure as e:
        raise HTTPException(status_code=500, detail="database unavailable") from e
    return {"status": "ok", "schema_version": version}
