import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from homepage_cms.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SectionType(str, enum.Enum):
    HERO_BANNER = "hero_banner"
    PRODUCT_CAROUSEL = "product_carousel"
    TEXT_BLOCK = "text_block"
    CATEGORY_GRID = "category_grid"
    PROMO_BANNER = "promo_banner"
    NEWSLETTER = "newsletter"
    CUSTOM_HTML = "custom_html"


class SectionStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class HomepageSection(Base):
    __tablename__ = "homepage_sections"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    section_type = Column(Enum(SectionType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    section_key = Column(String(120), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    locale = Column(String(10), nullable=False, default="en", index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(
        Enum(SectionStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SectionStatus.DRAFT,
    )

    # Version pointers, kept without FKs so sections and versions can be inserted in any order
    published_version_id = Column(Integer, nullable=True)
    draft_version_id = Column(Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    section_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    versions = relationship("SectionVersion", back_populates="section", cascade="all, delete-orphan")
    schedules = relationship("SectionSchedule", back_populates="section", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("locale", "section_key", name="uq_homepage_section_locale_key"),
        Index("idx_homepage_sections_render", "locale", "is_active", "status", "display_order"),
    )
