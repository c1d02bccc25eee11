"""Category domain service."""

from typing import Optional

from ledgerimport.database.base import Database
from ledgerimport.domain.entities import Category
from ledgerimport.domain.errors import ConflictError, ValidationError


class CategoryService:
    """Service for managing categories."""

    def __init__(self, db: Database):
        """Initialize category service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_category(self, name: str) -> int:
        """Create a category.

        Args:
            name: Category name

        Returns:
            Category ID

        Raises:
            ConflictError: If a category with the same name exists
        """
        if not name or not name.strip():
            raise ValidationError("Category name cannot be empty")
        if self.get_category_by_name(name) is not None:
            raise ConflictError(f"Category '{name}' already exists")
        return self.db.create_category(name=name)

    def get_category_by_name(self, name: str) -> Optional[Category]:
        """Get category by exact name."""
        for category in self.db.list_categories():
            if category.name == name:
                return category
        return None

    def list_categories(self) -> list[Category]:
        """List all categories."""
        return self.db.list_categories()
