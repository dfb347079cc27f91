"""
Utilidades para el manejo de zonas horarias en el sistema.
"""
from datetime import datetime, date, timezone
from typing import Optional
import pytz


def get_current_time_in_timezone(tz_name: str, now_utc: Optional[datetime] = None) -> datetime:
    """
    Obtiene la hora actual en la zona horaria indicada.

    Args:
        tz_name: Zona horaria IANA (ej: 'Europe/Istanbul')
        now_utc: Instante de referencia en UTC (por defecto, ahora)

    Returns:
        Datetime aware en la zona horaria indicada
    """
    if now_utc is None:
        now_utc = datetime.now(timezone.utc)
    elif now_utc.tzinfo is None:
        # Si es naive, asumimos que es UTC
        now_utc = now_utc.replace(tzinfo=timezone.utc)

    tz = pytz.timezone(tz_name)
    return now_utc.astimezone(tz)


def get_current_date_in_timezone(tz_name: str, now_utc: Optional[datetime] = None) -> date:
    """
    Fecha de calendario "de hoy" en la zona horaria de la academia.

    El motor de recurrencia nunca lee el reloj: esta función es el proveedor
    que usa la capa HTTP para pasarle un `today` explícito.
    """
    return get_current_time_in_timezone(tz_name, now_utc).date()
