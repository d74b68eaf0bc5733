"""
Ordered section <-> catalog junction rows.

Associations hang off the section rather than a version, so edits to them
are visible to readers as soon as they are committed.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from homepage_cms.database import Base
from homepage_cms.models.section import JSONType, utcnow


class SectionProduct(Base):
    __tablename__ = "section_products"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    section_id = Column(Integer, ForeignKey("homepage_sections.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    item_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    product = relationship("Product", lazy="joined")

    __table_args__ = (
        UniqueConstraint("section_id", "product_id", name="uq_section_product"),
        Index("idx_section_products_order", "section_id", "display_order"),
    )


class SectionCategory(Base):
    __tablename__ = "section_categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    section_id = Column(Integer, ForeignKey("homepage_sections.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    item_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    category = relationship("Category", lazy="joined")

    __table_args__ = (
        UniqueConstraint("section_id", "category_id", name="uq_section_category"),
        Index("idx_section_categories_order", "section_id", "display_order"),
    )
