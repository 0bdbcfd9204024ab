from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from medibook.core import config


def _connect_args(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'check_same_thread': False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_doctor_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_doctor_schema() -> None:
    """Add profile columns that older ``doctors`` tables were created without."""
    global _doctor_schema_checked

    if _doctor_schema_checked:
        return

    with _schema_lock:
        if _doctor_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctors' not in inspector.get_table_names():
            _doctor_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctors')}
        migration_steps = [
            ('experience', 'ALTER TABLE doctors ADD COLUMN experience INTEGER'),
            ('clinic_name', 'ALTER TABLE doctors ADD COLUMN clinic_name VARCHAR'),
            ('clinic_city', 'ALTER TABLE doctors ADD COLUMN clinic_city VARCHAR'),
            ('rating', 'ALTER TABLE doctors ADD COLUMN rating FLOAT'),
            ('reviews', 'ALTER TABLE doctors ADD COLUMN reviews INTEGER DEFAULT 0'),
            ('version', 'ALTER TABLE doctors ADD COLUMN version INTEGER DEFAULT 1'),
            ('updated_at', 'ALTER TABLE doctors ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_doctors_specialty ON doctors(specialty)')
            )

        _doctor_schema_checked = True


def ensure_appointment_indexes() -> None:
    with engine.begin() as connection:
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)')
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_appointments_patient ON appointments(patient_id)')
        )
