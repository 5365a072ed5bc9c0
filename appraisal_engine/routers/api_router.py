from fastapi import APIRouter
from appraisal_engine.routers import appraisals

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(appraisals.router, tags=["Appraisals"])
