import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from homepage_cms.database import Base
from homepage_cms.models.section import utcnow


class ScheduleStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SectionSchedule(Base):
    __tablename__ = "section_schedules"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    section_id = Column(Integer, ForeignKey("homepage_sections.id", ondelete="CASCADE"), nullable=False, index=True)
    version_id = Column(Integer, ForeignKey("section_versions.id", ondelete="CASCADE"), nullable=True)
    publish_at = Column(DateTime(timezone=True), nullable=True)
    expire_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(ScheduleStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ScheduleStatus.PENDING,
    )
    executed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    section = relationship("HomepageSection", back_populates="schedules")

    __table_args__ = (
        CheckConstraint(
            "expire_at IS NULL OR publish_at IS NULL OR expire_at > publish_at",
            name="valid_schedule_window",
        ),
        Index("idx_section_schedules_pending", "status", "publish_at"),
        Index("idx_section_schedules_expiry", "status", "expire_at"),
    )
