# ingres/api/routes/health.py
from fastapi import APIRouter, Depends

from ingres.api.deps import get_kv
from ingres.services.kv import KVStore

router = APIRouter()


@router.get("/health")
def health(kv: KVStore = Depends(get_kv)):
    return {"ok": True, "kv": type(kv).__name__}
