import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.core import config
from clinic_scheduler.database import Database
from clinic_scheduler.dependencies import build_scheduler
from clinic_scheduler.routes import appointment_routes, availability_routes, participant_routes
from clinic_scheduler.services.directory import ParticipantDirectory

config.validate_runtime_config()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)

database = Database(config.DATABASE_URL)
app.state.database = database
app.state.scheduler = build_scheduler(database)
app.state.directory = ParticipantDirectory(database)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        database.ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.on_event('shutdown')
def close_database() -> None:
    database.dispose()


@app.get('/')
def root():
    return {'status': 'Clinic Scheduler API Running', 'environment': config.APP_ENV}


app.include_router(participant_routes.router, prefix='/participants')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
