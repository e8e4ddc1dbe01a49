import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from wikigen.db_models import Base


logger = logging.getLogger(__name__)


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create the run ledger schema if needed and return a session factory."""
    url = make_url(database_url)
    connect_args: dict[str, object] = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, connect_args=connect_args)
    Base.metadata.create_all(engine)
    logger.debug("run ledger ready", extra={"database": url.render_as_string(hide_password=True)})
    return sessionmaker(bind=engine, autoflush=False)
