from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime

from ohsurvey.core.database import Base
from ohsurvey.core.types import GUID, generate_uuid
from ohsurvey.domain.aggregate import SurveyStatus


class Survey(Base):
    """
    Persisted noise survey.

    ``data`` holds the full aggregate encoding; client, project, site and
    status are copied out of it so surveys can be listed without decoding.
    """
    __tablename__ = "surveys"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    client = Column(String(255), default="", nullable=False)
    project = Column(String(255), default="", nullable=False)
    site = Column(String(255), default="", nullable=False)
    status = Column(SQLEnum(SurveyStatus), default=SurveyStatus.IN_PROGRESS, nullable=False, index=True)

    data = Column(JSON, nullable=False, default=dict)
    revision = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="surveys")

    def __repr__(self):
        return f"<Survey {self.id} {self.client}/{self.site}>"
