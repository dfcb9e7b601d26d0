from fastapi import APIRouter, Depends

from marketplace.database.connection import mongo_db_dependency
from marketplace.repositories.device_repository import DeviceRepository
from marketplace.schemas.device import DeviceRegister
from marketplace.utils.dependencies import get_current_user


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(body: DeviceRegister, current_user: dict = Depends(get_current_user), db=Depends(mongo_db_dependency)):
    repo = DeviceRepository(db)
    doc = await repo.register(current_user["_id"], body.platform, body.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}
