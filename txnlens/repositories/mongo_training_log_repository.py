"""MongoDB implementation of TrainingLogRepository"""

import logging
import secrets
from typing import List, Dict, Optional, Any

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from txnlens.models.training_sample_model import MLTrainingSample
from txnlens.repositories.training_log_repository import TrainingLogRepository

logger = logging.getLogger(__name__)


def new_sample_id() -> str:
    return "ml_" + secrets.token_hex(4)


class MongoTrainingLogRepository(TrainingLogRepository):
    """MongoDB implementation of TrainingLogRepository"""

    def __init__(self, db: Database):
        """
        Initialize MongoDB training log repository.

        Args:
            db: MongoDB database instance
        """
        self.db = db
        self.collection = db["ml_training_samples"]
        self._create_indexes()

    def _create_indexes(self):
        """Create indexes for better query performance"""
        try:
            self.collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
            self.collection.create_index("chosen_category_id")
        except PyMongoError as e:
            logger.warning("Index creation warning: %s", e)

    def log_prediction(self, sample: Dict[str, Any]) -> str:
        """Insert a prediction event with no chosen category"""
        doc = MLTrainingSample(**sample).model_dump(by_alias=True)
        doc["_id"] = new_sample_id()
        doc["chosen_category_id"] = None
        self.collection.insert_one(doc)
        return doc["_id"]

    def log_correction(self, sample_id: str, chosen_category_id: str) -> bool:
        """Set chosen_category_id once; an already-corrected row is left as is"""
        result = self.collection.update_one(
            {"_id": sample_id, "chosen_category_id": None},
            {"$set": {"chosen_category_id": chosen_category_id}},
        )
        return result.modified_count == 1

    def get_sample(self, sample_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": sample_id})

    def confusion_pairs(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Aggregate corrected rows by (predicted, chosen)"""
        match: Dict[str, Any] = {"chosen_category_id": {"$ne": None}}
        if user_id:
            match["user_id"] = user_id

        pipeline = [
            {"$match": match},
            {"$group": {
                "_id": {
                    "predicted": "$predicted_category_id",
                    "chosen": "$chosen_category_id",
                },
                "count": {"$sum": 1},
            }},
            {"$sort": {"count": -1}},
        ]
        pairs = []
        for row in self.collection.aggregate(pipeline):
            pairs.append({
                "predicted_category_id": row["_id"].get("predicted"),
                "chosen_category_id": row["_id"].get("chosen"),
                "count": row["count"],
            })
        # stable order among equal counts
        pairs.sort(key=lambda p: (-p["count"], str(p["predicted_category_id"]), str(p["chosen_category_id"])))
        return pairs

    def list_recent_samples(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        cursor = (
            self.collection.find({"user_id": user_id})
            .sort("created_at", DESCENDING)
            .limit(limit)
        )
        return list(cursor)

    def list_corrected_samples(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"chosen_category_id": {"$ne": None}}
        if user_id:
            query["user_id"] = user_id
        return list(self.collection.find(query).sort("created_at", ASCENDING))
