"""MongoDB implementation of CategoryRepository"""

from typing import List, Dict, Optional, Any
from pymongo.database import Database

from txnlens.repositories.category_repository import CategoryRepository


class MongoCategoryRepository(CategoryRepository):
    """MongoDB implementation of CategoryRepository"""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db["categories"]

    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": category_id})

    def list_categories(self, category_type: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if category_type:
            query["type"] = category_type
        return list(self.collection.find(query).sort("name", 1))
