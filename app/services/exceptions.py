"""
Excepciones de dominio del motor de programación de clases.

Los servicios las lanzan; la capa HTTP las traduce a respuestas.
"""
import enum
from typing import List, Optional, Sequence


class ScheduleError(Exception):
    """Base de todos los errores del motor de programación."""
    pass


class ScheduleValidationError(ScheduleError):
    """Template mal formado. Se rechaza antes de expandir o escribir nada."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.errors: List[str] = list(errors) if errors else [message]


class InvalidRecurrenceError(ScheduleError):
    """Template válido cuya recurrencia no produce ninguna ocurrencia."""
    pass


class OccurrenceCapExceededError(ScheduleError):
    """La expansión superaría el límite de ocurrencias (política `reject`)."""

    def __init__(self, max_occurrences: int):
        super().__init__(
            f"La expansión supera el máximo de {max_occurrences} ocurrencias"
        )
        self.max_occurrences = max_occurrences


class InstanceSetState(str, enum.Enum):
    PREVIOUS = "previous"  # El conjunto anterior de instancias sigue intacto
    REPLACED = "replaced"  # El conjunto nuevo quedó persistido


class SchedulePersistenceError(ScheduleError):
    """Fallo escribiendo/borrando instancias o el template."""

    def __init__(self, message: str, instance_state: InstanceSetState, template_id: Optional[int] = None):
        super().__init__(message)
        self.instance_state = instance_state
        self.template_id = template_id


class ScheduleConflictError(ScheduleError):
    """Otra escritura del mismo template ganó la carrera (versión o lock)."""
    pass


class ScheduleNotFoundError(ScheduleError):
    pass


class InstanceNotFoundError(ScheduleError):
    pass


class InvalidTransitionError(ScheduleError):
    """Transición de estado no permitida para una instancia."""

    def __init__(self, instance_id: int, current_status: str, target_status: str):
        super().__init__(
            f"La instancia {instance_id} no puede pasar de '{current_status}' a '{target_status}'"
        )
        self.instance_id = instance_id
        self.current_status = current_status
        self.target_status = target_status
