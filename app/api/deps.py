"""
Dependencias comunes de los endpoints.
"""
from datetime import date
from typing import Optional

from fastapi import Header

from app.core.config import get_settings
from app.core.timezone_utils import get_current_date_in_timezone


def get_today() -> date:
    """Fecha de hoy en la zona horaria de la academia. Los tests la sobreescriben."""
    return get_current_date_in_timezone(get_settings().ACADEMY_TIMEZONE)


def get_staff_id(x_staff_id: Optional[int] = Header(None, alias="X-Staff-ID")) -> Optional[int]:
    """ID del miembro del staff que actúa; la autenticación vive fuera de este servicio."""
    return x_staff_id
