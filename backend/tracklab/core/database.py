"""
Configuration de la base de données avec SQLModel
"""
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

# Enregistre les tables dans SQLModel.metadata
from tracklab.domain.entities import workout_entry  # noqa: F401


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Créer l'engine de base de données"""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def create_db_and_tables(engine: Engine) -> None:
    """Créer toutes les tables de la base de données"""
    SQLModel.metadata.create_all(engine)
