from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from homepage_cms.database import Base
from homepage_cms.models.section import JSONType, utcnow


class SectionVersion(Base):
    __tablename__ = "section_versions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    section_id = Column(Integer, ForeignKey("homepage_sections.id", ondelete="CASCADE"), nullable=False)
    version_number = Column(Integer, nullable=False)
    content = Column(JSONType, nullable=False)
    change_summary = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    section = relationship("HomepageSection", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("section_id", "version_number", name="uq_section_version_number"),
        Index("idx_section_versions_history", "section_id", "version_number"),
    )
