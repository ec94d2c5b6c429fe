# ingres/models/location.py
import unicodedata

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from ingres.models.base import Base


def fold_name(name: str) -> str:
    """Lookup key for `name`: NFC, single-spaced, casefolded."""
    return " ".join(unicodedata.normalize("NFC", name or "").split()).casefold()


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True)
    # display form (trimmed, single-spaced); empty for state stubs
    name = Column(String, nullable=False, default="")
    name_key = Column(String, nullable=False, default="")
    type = Column(String(16), nullable=False)  # STATE | DISTRICT | BLOCK
    uuid = Column(String(36), nullable=False, unique=True, index=True)

    parent_id = Column(Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    parent = relationship("Location", remote_side=[id])

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    __table_args__ = (Index("ix_locations_name_key_type", "name_key", "type"),)

    @validates("name")
    def _sync_name_key(self, _, value):
        self.name_key = fold_name(value)
        return value
