from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base


def init_db(database_url: str, *, echo: bool = False, reset: bool = False) -> sessionmaker[Session]:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        path = Path(url.database)
        if reset and path.exists():
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)

    engine: Engine = create_engine(database_url, echo=echo)
    Base.metadata.create_all(engine)
    return sessionmaker(engine)
