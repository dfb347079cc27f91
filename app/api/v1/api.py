from fastapi import APIRouter

from app.api.v1.endpoints import schedules, instances

api_router = APIRouter()

# Templates de clases y sus instancias materializadas
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])

# Ciclo de vida de cada instancia
api_router.include_router(instances.router, prefix="/instances", tags=["instances"])
