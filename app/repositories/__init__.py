# Inicializador del paquete repositories
from app.repositories.async_base import AsyncBaseRepository
from app.repositories.async_schedule import (
    async_schedule_template_repository,
    async_class_instance_repository,
)
from app.repositories.async_staff import async_staff_repository

__all__ = [
    "AsyncBaseRepository",
    "async_schedule_template_repository",
    "async_class_instance_repository",
    "async_staff_repository",
]
