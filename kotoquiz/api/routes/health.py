from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from kotoquiz.utils.database import get_db, check_db_connection

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    健康检查：数据库不可用时返回 503
    """
    if not check_db_connection(db):
        return JSONResponse(status_code=503, content={"status": "DOWN"})
    return {"status": "UP"}
