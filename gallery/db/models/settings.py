from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from gallery.db.base import Base

BRANDING_KEY = "branding"


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    logo_key = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
