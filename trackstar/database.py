from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

# SQLite precisa de check_same_thread=False quando usado com FastAPI
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)

# Base declarativa para nossos modelos de banco de dados
Base = declarative_base()

# Fábrica de sessões para interagir com o DB
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


# Dependência para obter a sessão do banco de dados (usada nos endpoints da API)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
