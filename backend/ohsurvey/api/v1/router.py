from fastapi import APIRouter
from ohsurvey.api.v1.endpoints import auth, surveys, equipment, areas, stores

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "ohsurvey-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(surveys.router, prefix="/surveys", tags=["Surveys"])
api_router.include_router(equipment.router, prefix="/surveys", tags=["Equipment"])
api_router.include_router(areas.router, prefix="/surveys", tags=["Areas"])
api_router.include_router(stores.router, prefix="/surveys", tags=["Area Data"])
