"""
Catalog tables the homepage resolves association references against.

Owned by the storefront catalog; the CMS only reads them.
"""

from sqlalchemy import Boolean, Column, Integer, Numeric, String, Text

from homepage_cms.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    image_url = Column(String(1024), nullable=True)
    inventory_count = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, index=True)
    description = Column(Text, nullable=True)
