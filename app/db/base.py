# Importar todos los modelos para que Alembic los detecte
from app.db.base_class import Base  # noqa
from app.models.staff import Staff  # noqa
from app.models.schedule import ScheduleTemplate, ClassInstance  # noqa
