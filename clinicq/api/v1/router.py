"""API v1 router configuration."""

from fastapi import APIRouter

from clinicq.api.v1.endpoints import admin, appointments, diagnoses, health, queue, realtime

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(queue.router, prefix="/doctor", tags=["Queue"])
api_router.include_router(admin.router)
api_router.include_router(diagnoses.router, prefix="/diagnoses", tags=["Diagnoses"])
api_router.include_router(realtime.router, tags=["Realtime"])
