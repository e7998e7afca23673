"""Repository interfaces and implementations for clean architecture"""

from txnlens.repositories.training_log_repository import TrainingLogRepository
from txnlens.repositories.category_repository import CategoryRepository

__all__ = ["TrainingLogRepository", "CategoryRepository"]
