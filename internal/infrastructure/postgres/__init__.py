"""
PostgreSQL infrastructure package.
"""
from .taxonomy_repository import PostgresTaxonomyRepository, create_pool

__all__ = ["PostgresTaxonomyRepository", "create_pool"]
