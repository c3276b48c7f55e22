from sqlalchemy import Column, String, DateTime
from gallery.db.base import Base


class Tenant(Base):
    __tablename__ = "clients"

    id = Column(String(16), primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
