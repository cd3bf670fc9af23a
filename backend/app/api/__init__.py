from fastapi import APIRouter, Request
from app.api import calls
from app.services.metrics import registry_sizes

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    controller = getattr(request.app.state, "call_controller", None)
    return {"status": "ok", **registry_sizes(controller)}


router.include_router(calls.router)
