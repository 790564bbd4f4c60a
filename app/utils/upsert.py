# app/utils/upsert.py
"""
Keyed upserts (INSERT .. ON CONFLICT DO UPDATE) for the cut and parameter
tables. The caller owns the transaction: nothing is committed here.
"""

from sqlalchemy.dialects import postgresql, sqlite
from app import db

UPSERT_CHUNK_SIZE = 200

_DIALECT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def upsert_rows(model, rows, index_elements):
    """
    Inserts `rows` (list of column dicts) into `model`'s table, overwriting
    every non-key column when a row with the same `index_elements` exists.
    Returns the number of rows written.
    """
    if not rows:
        return 0

    dialect = db.engine.dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        return _upsert_with_orm(model, rows, index_elements)

    # Chunked so a large zone stays under the bound-parameter limit
    for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
        chunk = rows[start:start + UPSERT_CHUNK_SIZE]
        stmt = insert(model.__table__).values(chunk)
        update_columns = {
            column: stmt.excluded[column]
            for column in chunk[0].keys()
            if column not in index_elements and column != 'id'
        }
        stmt = stmt.on_conflict_do_update(index_elements=index_elements, set_=update_columns)
        db.session.execute(stmt)
    return len(rows)


def _upsert_with_orm(model, rows, index_elements):
    # Dialects without ON CONFLICT support: look up each key and update in place
    for row in rows:
        key = {name: row[name] for name in index_elements}
        existing = model.query.filter_by(**key).first()
        if existing is None:
            db.session.add(model(**row))
        else:
            for column, value in row.items():
                setattr(existing, column, value)
    db.session.flush()
    return len(rows)
