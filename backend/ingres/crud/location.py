# ingres/crud/location.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ingres.models.location import Location, fold_name


def display_name(name: str) -> str:
    """Trim and collapse internal whitespace, keep case."""
    return " ".join((name or "").split())


def get_by_name_type(db: Session, name: str, type_: str) -> Optional[Location]:
    key = fold_name(name)
    if not key:
        return None
    return (
        db.query(Location)
        .filter(Location.name_key == key, Location.type == type_)
        .order_by(Location.id)
        .first()
    )


def get_by_id(db: Session, id_: Optional[int]) -> Optional[Location]:
    if id_ is None:
        return None
    return db.get(Location, id_)


def get_by_uuid(db: Session, uuid: str) -> Optional[Location]:
    return db.query(Location).filter(Location.uuid == uuid).one_or_none()


def list_by_type(db: Session, type_: str) -> List[Location]:
    return db.query(Location).filter(Location.type == type_).all()


def _ensure(db: Session, *, uuid: str, type_: str, name: Optional[str], parent_id: Optional[int] = None) -> Location:
    """Insert-or-update by uuid. name=None leaves an existing name untouched."""
    row = get_by_uuid(db, uuid)
    if row is None:
        row = Location(uuid=uuid, type=type_, name=name or "", parent_id=parent_id)
        db.add(row)
    else:
        if name is not None:
            row.name = name
        if parent_id is not None:
            row.parent_id = parent_id
    db.flush()
    return row


def upsert_state(db: Session, *, name: str, uuid: str) -> Location:
    row = _ensure(db, uuid=uuid, type_="STATE", name=display_name(name))
    db.commit()
    db.refresh(row)
    return row


def upsert_district(db: Session, *, name: str, uuid: str, state_uuid: str) -> Location:
    # parent first; a stub with an empty name when the state was never seen
    state = _ensure(db, uuid=state_uuid, type_="STATE", name=None)
    row = _ensure(db, uuid=uuid, type_="DISTRICT", name=display_name(name), parent_id=state.id)
    db.commit()
    db.refresh(row)
    return row
