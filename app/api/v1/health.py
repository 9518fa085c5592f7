from fastapi import APIRouter

from app.services.extractor import extractor_configured

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check():
    return {"status": "healthy", "extractor_configured": extractor_configured()}
