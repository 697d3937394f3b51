from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.deps import get_read_db

router = APIRouter()

@router.get("/health")
def health(db: Session = Depends(get_read_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}
