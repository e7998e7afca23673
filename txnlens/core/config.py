from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    APP_NAME: str = "txnlens API"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = Field(default="INFO")

    MONGO_URI: str = Field(default="mongodb://localhost:27017")
    MONGO_DB: str = Field(default="txnlens")
    JWT_SECRET_KEY: str = Field(default="change-me")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_EXPIRATION_HOURS: int = Field(default=24)

    # Local artifacts (model weights, vocabulary, cache, metrics)
    DATA_DIR: str = Field(default="data")
    MODEL_DIR_NAME: str = Field(default="chatbot_model")

    # Sequence classifier
    ML_CLASSIFIER_ENABLED: bool = Field(default=True)
    MAX_SEQUENCE_LENGTH: int = Field(default=16)
    EMBEDDING_DIM: int = Field(default=32)
    HIDDEN_UNITS: int = Field(default=64)
    TRAIN_EPOCHS: int = Field(default=6)
    TRAIN_MAX_BATCH_SIZE: int = Field(default=32)
    LEARNING_RATE: float = Field(default=0.001)
    MODEL_MIN_CONFIDENCE: float = Field(default=0.6)
    MIN_TRAINING_SAMPLES: int = Field(default=20)
    WARMUP_ON_STARTUP: bool = Field(default=True)

    # Prediction cache
    CACHE_TTL_SECONDS: int = Field(default=24 * 60 * 60)
    CACHE_MAX_ENTRIES: int = Field(default=500)

    # Adaptive learner
    LEARNER_DEBOUNCE_SECONDS: float = Field(default=3.0)
    LEARNER_BATCH_SIZE: int = Field(default=5)

    # Monitoring windows
    LATENCY_WINDOW: int = Field(default=200)
    ACCURACY_WINDOW: int = Field(default=500)

    # Remote LLM fallback
    GROQ_API_KEY: Optional[str] = Field(default=None)
    GROQ_MODEL: str = Field(default="llama-3.1-8b-instant")
    HUGGINGFACE_API_KEY: Optional[str] = Field(default=None)
    HUGGINGFACE_MODEL: str = Field(default="google/flan-t5-base")
    LLM_API_KEY: Optional[str] = Field(default=None)
    LLM_TIMEOUT_SECONDS: float = Field(default=15.0)
    LLM_MAX_NEW_TOKENS: int = Field(default=150)
    LLM_TEMPERATURE: float = Field(default=0.2)

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
