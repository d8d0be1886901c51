import os

# must be set before config/database are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from config import settings
from database import Base, get_db
from main import app
from models import (
    MicroLine,
    MicroLineStep,
    ProductionLine,
    ProductionLineMicroLine,
    ProductLayer,
    Step,
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)


@event.listens_for(engine, "connect")
def _sqlite_fk_on(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _get_db():
        s = TestingSession()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def trf_dirs(tmp_path, monkeypatch):
    export_dir = tmp_path / "trf-files"
    log_path = tmp_path / "logs" / "trf-generation.log"
    monkeypatch.setattr(settings, "trf_export_dir", str(export_dir))
    monkeypatch.setattr(settings, "trf_log_path", str(log_path))
    return SimpleNamespace(export_dir=export_dir, log_path=log_path)


def _step(db, code, name, role="standard"):
    s = Step(code=code, name=name, role=role)
    db.add(s)
    db.flush()
    return s


@pytest.fixture
def line_ab(db):
    """Line L = micro-line A [optimizer, cutting] then micro-line B [tempering]."""
    s1 = _step(db, "OPT", "Optimizer", role="optimizer")
    s2 = _step(db, "CUT", "Cutting")
    s3 = _step(db, "TMP", "Tempering")
    stray = _step(db, "PACK", "Packing")

    a = MicroLine(code="A", name="Cutting cell", steps=[
        MicroLineStep(step_id=s2.id, order=2),
        MicroLineStep(step_id=s1.id, order=1),
    ])
    b = MicroLine(code="B", name="Furnace", steps=[MicroLineStep(step_id=s3.id, order=1)])
    db.add_all([a, b])
    db.flush()

    line = ProductionLine(code="L1", name="Tempered line", micro_lines=[
        ProductionLineMicroLine(micro_line_id=b.id, order=2),
        ProductionLineMicroLine(micro_line_id=a.id, order=1),
    ])
    empty = ProductionLine(code="L0", name="Empty line")
    db.add_all([line, empty])
    db.commit()
    return SimpleNamespace(s1=s1, s2=s2, s3=s3, stray=stray, a=a, b=b, line=line, empty=empty)


@pytest.fixture
def make_layer(db):
    counter = {"n": 0}

    def _make(line=None, **kw):
        counter["n"] += 1
        layer = ProductLayer(
            production_code=kw.pop("production_code", f"PL-{counter['n']:04d}"),
            production_line_id=line.id if line is not None else None,
            width=kw.pop("width", 1100),
            height=kw.pop("height", 1101),
            **kw,
        )
        db.add(layer)
        db.commit()
        return layer

    return _make
