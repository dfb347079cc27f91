"""
Expansión de templates en ocurrencias de calendario.

Cálculo puro: no hay I/O ni lectura del reloj. La fecha de "hoy" la pasa
siempre el caller, de modo que la misma definición con el mismo `today`
produce exactamente la misma secuencia.
"""
from typing import List, Optional
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
import logging

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import OccurrenceCapPolicy, Settings, get_settings
from app.models.schedule import DayOfWeek
from app.schemas.schedule import (
    Occurrence,
    ScheduleDefinition,
    SingleRecurrence,
    WeeklyRecurrence,
)
from app.services.exceptions import InvalidRecurrenceError, OccurrenceCapExceededError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class OccurrenceLimits(BaseModel):
    """Límites de seguridad de la expansión."""
    model_config = ConfigDict(frozen=True)

    max_occurrences: int = Field(500, ge=1)
    horizon_months: int = Field(3, ge=1)
    cap_policy: OccurrenceCapPolicy = OccurrenceCapPolicy.TRUNCATE

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OccurrenceLimits":
        settings = settings or get_settings()
        return cls(
            max_occurrences=settings.SCHEDULE_MAX_OCCURRENCES,
            horizon_months=settings.SCHEDULE_DEFAULT_HORIZON_MONTHS,
            cap_policy=settings.SCHEDULE_CAP_POLICY,
        )


def split_price(total_price: Optional[Decimal], occurrence_count: int) -> Optional[Decimal]:
    """
    Parte del precio total que corresponde a cada ocurrencia.

    Se redondea al céntimo; el resto del redondeo no se reparte, así que la
    suma de las partes puede diferir del total en menos de un céntimo por
    ocurrencia.
    """
    if total_price is None or occurrence_count <= 0:
        return None
    return (Decimal(total_price) / occurrence_count).quantize(CENT, rounding=ROUND_HALF_UP)


def recurrence_window_end(definition: ScheduleDefinition, limits: OccurrenceLimits) -> date:
    """Último día que se escanea: end_date o, si no hay, start_date + horizonte."""
    recurrence = definition.recurrence
    if isinstance(recurrence, WeeklyRecurrence) and recurrence.end_date is not None:
        return recurrence.end_date
    return definition.start_date + relativedelta(months=limits.horizon_months)


def _expand_weekly_dates(
    definition: ScheduleDefinition,
    recurrence: WeeklyRecurrence,
    today: date,
    limits: OccurrenceLimits,
) -> List[date]:
    window_end = recurrence_window_end(definition, limits)
    days = recurrence.days_of_week

    dates: List[date] = []
    scan_from = max(today, definition.start_date)

    # La primera ocurrencia es start_date si su día está en el patrón,
    # aunque el escaneo general empiece en hoy
    if DayOfWeek.from_date(definition.start_date) in days:
        dates.append(definition.start_date)
        scan_from = max(scan_from, definition.start_date + timedelta(days=1))

    current = scan_from
    while current <= window_end:
        if DayOfWeek.from_date(current) in days:
            if len(dates) >= limits.max_occurrences:
                if limits.cap_policy == OccurrenceCapPolicy.REJECT:
                    raise OccurrenceCapExceededError(limits.max_occurrences)
                logger.warning(
                    f"Expansión truncada en {limits.max_occurrences} ocurrencias "
                    f"(último día incluido: {dates[-1].isoformat()})"
                )
                break
            dates.append(current)
        current += timedelta(days=1)

    return dates


def expand_schedule(
    definition: ScheduleDefinition,
    *,
    today: date,
    limits: Optional[OccurrenceLimits] = None,
) -> List[Occurrence]:
    """
    Convierte una definición validada en su secuencia ordenada de ocurrencias.

    Args:
        definition: Template validado
        today: Fecha de referencia "hoy", siempre explícita
        limits: Límite de ocurrencias, horizonte y política de truncado

    Returns:
        Ocurrencias ordenadas por fecha (todas a la misma hora)

    Raises:
        InvalidRecurrenceError: Si la recurrencia no produce ninguna ocurrencia
        OccurrenceCapExceededError: Si se supera el límite con la política `reject`
    """
    limits = limits or OccurrenceLimits.from_settings()
    recurrence = definition.recurrence

    if isinstance(recurrence, SingleRecurrence):
        dates = [definition.start_date]
    else:
        dates = _expand_weekly_dates(definition, recurrence, today, limits)

    if not dates:
        raise InvalidRecurrenceError(
            "La recurrencia no genera ninguna clase entre "
            f"{max(today, definition.start_date).isoformat()} y "
            f"{recurrence_window_end(definition, limits).isoformat()}"
        )

    end_time = definition.end_time
    price_share = split_price(definition.total_price, len(dates))

    occurrences = [
        Occurrence(
            date=occurrence_date,
            start_time=definition.start_time,
            end_time=end_time,
            price_share=price_share,
        )
        for occurrence_date in dates
    ]

    logger.debug(
        f"Template '{definition.name}' expandido en {len(occurrences)} ocurrencias "
        f"(today={today.isoformat()})"
    )
    return occurrences
