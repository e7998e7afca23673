"""Training log repository interface following clean architecture"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any


class TrainingLogRepository(ABC):
    """Abstract repository interface for prediction events and user corrections"""

    @abstractmethod
    def log_prediction(self, sample: Dict[str, Any]) -> str:
        """
        Insert one prediction event.

        Args:
            sample: Training sample fields (user_id, text, amount, io,
                predicted_category_id, confidence); chosen_category_id is
                always stored as null

        Returns:
            Id of the new row
        """
        pass

    @abstractmethod
    def log_correction(self, sample_id: str, chosen_category_id: str) -> bool:
        """
        Record the category the user chose for a prediction event.

        Args:
            sample_id: Training log row id
            chosen_category_id: Category confirmed by the user

        Returns:
            True if the row was updated, False if it is missing or was
            already corrected
        """
        pass

    @abstractmethod
    def get_sample(self, sample_id: str) -> Optional[Dict[str, Any]]:
        """Get one training log row by id"""
        pass

    @abstractmethod
    def confusion_pairs(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Count (predicted, chosen) pairs over corrected rows.

        Args:
            user_id: Optional user ID to filter by

        Returns:
            List of {predicted_category_id, chosen_category_id, count},
            most frequent first
        """
        pass

    @abstractmethod
    def list_recent_samples(self, user_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        """Newest rows for a user"""
        pass

    @abstractmethod
    def list_corrected_samples(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Rows with a chosen category, oldest first"""
        pass
