import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from medibook.core import config
from medibook.core.errors import LoginRequired, MedibookError
from medibook.database import Base, engine, ensure_appointment_indexes, ensure_doctor_schema
from medibook.models import account, admin, appointment, doctor, patient, user  # noqa: F401
from medibook.routes import admin_routes, auth_routes, doctor_routes, patient_routes

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='MediBook')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_doctor_schema()
        ensure_appointment_indexes()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(LoginRequired)
def redirect_to_login(request: Request, exc: LoginRequired):
    return RedirectResponse(url=exc.redirect_to, status_code=303)


@app.exception_handler(MedibookError)
def report_error(request: Request, exc: MedibookError):
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})


@app.get('/')
def root():
    return {'status': 'MediBook API Running'}


app.include_router(auth_routes.router)
app.include_router(doctor_routes.router)
app.include_router(patient_routes.router)
app.include_router(admin_routes.router)
