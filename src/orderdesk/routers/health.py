from fastapi import APIRouter

from orderdesk.shared.http import success_response

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return success_response(200, "API is running")
