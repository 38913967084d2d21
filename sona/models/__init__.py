from .base import Base, engine, SessionLocal, create_db_engine
from .job import Job, JobEvent

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "create_db_engine",
    "Job",
    "JobEvent",
]
