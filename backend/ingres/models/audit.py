from sqlalchemy import Column, DateTime, Integer, String, Text

from ingres.models.base import Base, utcnow


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    action = Column(String, nullable=False)  # e.g. 'uuid.lookup', 'portal.query'
    details = Column(Text, nullable=True)    # JSON
    user_hint = Column(String, nullable=True)
