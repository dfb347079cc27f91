"""
Services module

Lógica de negocio del motor de programación: expansión de recurrencias,
materialización de instancias, reconciliación de templates y ciclo de
vida de cada instancia.
"""

from app.services.schedule import schedule_service
from app.services.class_instance import instance_lifecycle_service
from app.services.instructor import instructor_directory

__all__ = [
    "schedule_service",
    "instance_lifecycle_service",
    "instructor_directory",
]
