"""
API v1 router
"""
from fastapi import APIRouter

from app.api.v1.endpoints import (
    templates,
    surveys,
    tasks,
    sops,
    dashboard,
    properties,
)

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(templates.router, prefix="/templates", tags=["Survey Templates"])
api_router.include_router(surveys.router, prefix="/surveys", tags=["Surveys"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(sops.router, prefix="/sops", tags=["SOPs"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(properties.router, prefix="/properties", tags=["Properties"])


@api_router.get("/")
async def api_root():
    """API v1 root endpoint"""
    return {
        "message": "Property Operations Portal API v1",
        "status": "active",
        "version": "1.0.0",
        "endpoints": {
            "templates": "/templates (writes ADMIN only)",
            "surveys": "/surveys",
            "tasks": "/tasks (ADMIN/PROPERTY_MANAGER)",
            "sops": "/sops",
            "dashboard": "/dashboard",
            "properties": "/properties",
            "docs": "/docs",
            "health": "/health"
        }
    }
