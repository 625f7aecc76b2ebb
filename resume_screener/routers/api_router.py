from fastapi import APIRouter
from resume_screener.routers import analysis, batches, job_descriptions, resumes

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(job_descriptions.router, tags=["Job Descriptions"])
api_router.include_router(resumes.router, tags=["Resumes"])
api_router.include_router(analysis.router, tags=["Analysis"])
api_router.include_router(batches.router, tags=["Batches"])
