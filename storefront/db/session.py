from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from storefront.core.config import settings

class Base(DeclarativeBase): pass

def engine_kwargs(dsn: str) -> dict:
    # a single shared connection keeps an in-memory SQLite database alive across threads
    if dsn.startswith('sqlite'):
        return {'poolclass': StaticPool, 'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}

engine = create_engine(settings.POSTGRES_DSN, **engine_kwargs(settings.POSTGRES_DSN))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
