from .base import ContentStore
from .memory import InMemoryContentStore
from .sqlalchemy_store import SQLAlchemyContentStore

__all__ = ["ContentStore", "InMemoryContentStore", "SQLAlchemyContentStore"]
