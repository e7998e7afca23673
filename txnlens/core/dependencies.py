"""Dependency injection for clean architecture"""

import asyncio
import os
from dataclasses import dataclass

from fastapi import Request
from pymongo.database import Database

from txnlens.core.config import Settings
from txnlens.core.exceptions import BadRequestException
from txnlens.core.scheduler import Debouncer
from txnlens.core.storage import LocalStore
from txnlens.ml.amount_extractor import AmountExtractor
from txnlens.ml.sequence_classifier import SequenceClassifier
from txnlens.repositories.category_repository import CategoryRepository
from txnlens.repositories.mongo_category_repository import MongoCategoryRepository
from txnlens.repositories.mongo_training_log_repository import MongoTrainingLogRepository
from txnlens.repositories.training_log_repository import TrainingLogRepository
from txnlens.services.adaptive_learner import AdaptiveLearner
from txnlens.services.classification_pipeline import ClassificationPipeline
from txnlens.services.evaluation_service import EvaluationService
from txnlens.services.llm_fallback import RemoteFallbackClient, build_providers
from txnlens.services.model_manager import ModelStore
from txnlens.services.model_training_service import ModelTrainingService
from txnlens.services.monitoring import MonitoringService
from txnlens.services.prediction_cache import PredictionCache


@dataclass
class Services:
    """Process-wide service objects, built once in the app lifespan"""
    training_log: TrainingLogRepository
    category_repository: CategoryRepository
    model_store: ModelStore
    classifier: SequenceClassifier
    debouncer: Debouncer
    learner: AdaptiveLearner
    cache: PredictionCache
    monitoring: MonitoringService
    llm: RemoteFallbackClient
    pipeline: ClassificationPipeline
    training: ModelTrainingService
    evaluation: EvaluationService


def build_services(db: Database, settings: Settings) -> Services:
    """
    Wire repositories, ML components and services together.

    Args:
        db: MongoDB database instance
        settings: Application settings

    Returns:
        Services container
    """
    training_log = MongoTrainingLogRepository(db)
    category_repository = MongoCategoryRepository(db)

    model_store = ModelStore(os.path.join(settings.DATA_DIR, settings.MODEL_DIR_NAME))
    local_store = LocalStore(os.path.join(settings.DATA_DIR, "local_store"))

    async def load_categories():
        return await asyncio.to_thread(category_repository.list_categories)

    classifier = SequenceClassifier(
        store=model_store,
        category_loader=load_categories,
        max_sequence_length=settings.MAX_SEQUENCE_LENGTH,
        embedding_dim=settings.EMBEDDING_DIM,
        hidden_units=settings.HIDDEN_UNITS,
        learning_rate=settings.LEARNING_RATE,
        epochs=settings.TRAIN_EPOCHS,
        max_batch_size=settings.TRAIN_MAX_BATCH_SIZE,
    )
    debouncer = Debouncer()
    learner = AdaptiveLearner(
        classifier,
        debouncer,
        debounce_seconds=settings.LEARNER_DEBOUNCE_SECONDS,
        batch_size=settings.LEARNER_BATCH_SIZE,
    )
    cache = PredictionCache(
        local_store,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        max_entries=settings.CACHE_MAX_ENTRIES,
    )
    monitoring = MonitoringService(
        local_store,
        latency_window=settings.LATENCY_WINDOW,
        accuracy_window=settings.ACCURACY_WINDOW,
    )
    llm = RemoteFallbackClient(build_providers(settings))
    pipeline = ClassificationPipeline(
        cache=cache,
        classifier=classifier,
        llm=llm,
        extractor=AmountExtractor(),
        training_log=training_log,
        category_repository=category_repository,
        learner=learner,
        monitoring=monitoring,
        min_confidence=settings.MODEL_MIN_CONFIDENCE,
        classifier_enabled=settings.ML_CLASSIFIER_ENABLED,
    )
    training = ModelTrainingService(
        classifier,
        training_log,
        category_repository,
        min_training_samples=settings.MIN_TRAINING_SAMPLES,
        epochs=settings.TRAIN_EPOCHS,
    )

    return Services(
        training_log=training_log,
        category_repository=category_repository,
        model_store=model_store,
        classifier=classifier,
        debouncer=debouncer,
        learner=learner,
        cache=cache,
        monitoring=monitoring,
        llm=llm,
        pipeline=pipeline,
        training=training,
        evaluation=EvaluationService(training_log),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_pipeline(request: Request) -> ClassificationPipeline:
    return get_services(request).pipeline


def get_monitoring_service(request: Request) -> MonitoringService:
    return get_services(request).monitoring


def get_training_service(request: Request) -> ModelTrainingService:
    return get_services(request).training


def get_evaluation_service(request: Request) -> EvaluationService:
    return get_services(request).evaluation


def get_training_log_repository(request: Request) -> TrainingLogRepository:
    return get_services(request).training_log


def get_current_user_id(request: Request) -> str:
    """
    User id from the JWT payload attached by TokenAuthMiddleware.

    Raises:
        BadRequestException: If the token carries no user id
    """
    user = getattr(request.state, "user", None) or {}
    user_id = user.get("user_id") or user.get("sub")
    if not user_id:
        raise BadRequestException(
            message="User authentication required",
            errors=["User ID not found in token"],
        )
    return str(user_id)
