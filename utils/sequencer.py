# utils/sequencer.py
from datetime import date

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from models import DocCounter

_UPSERT = text("""
    INSERT INTO doc_counters (doc_type, year, seq)
    VALUES (:t, :y, 1)
    ON CONFLICT (doc_type, year)
    DO UPDATE SET seq = doc_counters.seq + 1
    RETURNING seq
""")


def _bump_locked(db: Session, doc_type: str, year: int) -> int:
    # SQLite ignores FOR UPDATE; acceptable for dev and tests
    row = db.execute(
        select(DocCounter)
        .where(DocCounter.doc_type == doc_type, DocCounter.year == year)
        .with_for_update()
    ).scalar_one_or_none()
    if row is None:
        row = DocCounter(doc_type=doc_type, year=year, seq=0)
        db.add(row)
    row.seq += 1
    db.flush()
    return row.seq


def next_code_yearly(db: Session, prefix: str, width: int = 5) -> str:
    """Running number per prefix and year: PL2600001, PL2600002 ..."""
    year = date.today().year % 100
    if db.bind.dialect.name == "postgresql":
        seq = db.execute(_UPSERT, {"t": prefix, "y": year}).scalar_one()
    else:
        seq = _bump_locked(db, prefix, year)
    return f"{prefix}{year:02d}{seq:0{width}d}"
