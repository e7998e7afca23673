"""Category directory repository interface following clean architecture"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any


class CategoryRepository(ABC):
    """Abstract read-only access to the category directory"""

    @abstractmethod
    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        """
        Find a category by id.

        Returns:
            {_id, name, type} if found, None otherwise
        """
        pass

    @abstractmethod
    def list_categories(self, category_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List categories, optionally only IN or OUT ones.

        Args:
            category_type: "IN", "OUT" or None for all
        """
        pass
