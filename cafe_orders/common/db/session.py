from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine, insert, select
from sqlalchemy.orm import sessionmaker

from ..models import Base
from ..models.order import ORDER_COUNTER, OrderCounter


DEFAULT_DATABASE_URL = "sqlite:///data/cafe_orders.db"


def build_engine(database_url: str = None):
    url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
    if url.startswith("sqlite:///") and ":memory:" not in url:
        db_path = url.split("sqlite:///")[-1]
        try:
            parent = Path(db_path).expanduser().resolve().parent
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # real error will surface on connect if still invalid
            pass
    return create_engine(url, future=True)


def make_session_factory(engine):
    """Return a ``get_session`` context manager bound to ``engine``.

    Services receive this factory instead of reaching for a global client, so
    each request or sweep gets its own session and transaction.
    """
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def get_session():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session


def init_schema(engine) -> None:
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        seeded = conn.execute(select(OrderCounter.name).where(OrderCounter.name == ORDER_COUNTER)).first()
        if seeded is None:
            conn.execute(insert(OrderCounter).values(name=ORDER_COUNTER, value=0))
