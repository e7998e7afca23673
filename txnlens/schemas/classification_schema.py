from pydantic import BaseModel, Field, field_validator
from typing import List, Dict, Any, Optional
from txnlens.core.exceptions import UnprocessableEntityException


class ClassifyRequest(BaseModel):
    """Schema for a free-text transaction note to classify"""
    text: str = Field(..., description="Transaction note, e.g. 'ăn trưa 50k'", min_length=1, max_length=500)

    @field_validator('text')
    @classmethod
    def validate_text(cls, v):
        """Validate that text is not blank"""
        if not v or not v.strip():
            raise UnprocessableEntityException(
                'Invalid text',
                ['Transaction note cannot be empty']
            )
        return v.strip()


class CorrectionRequest(BaseModel):
    """Schema for accepting or correcting a proposed category"""
    sample_id: str = Field(..., description="Training log id returned by /classify", min_length=1)
    category_id: str = Field(..., description="Category chosen by the user", min_length=1)


class CorrectionResponse(BaseModel):
    """Schema for correction result"""
    sample_id: str
    category_id: str
    accepted: bool = Field(..., description="False when the sample was already corrected")


class ConfusionPair(BaseModel):
    predicted_category_id: Optional[str] = None
    chosen_category_id: Optional[str] = None
    count: int


class EvaluationResponse(BaseModel):
    """Schema for the offline evaluation report"""
    total_corrected: int
    accuracy: Optional[float] = None
    macro_f1: Optional[float] = None
    disagreement_rate: Optional[float] = None
    per_category: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    confusion_pairs: List[ConfusionPair] = Field(default_factory=list)


class LatencyStats(BaseModel):
    count: int
    mean_ms: float
    p95_ms: float


class AccuracyStats(BaseModel):
    total: int
    correct: int
    accuracy: Optional[float] = None


class TrainingStatusResponse(BaseModel):
    """Schema for warm-up / retraining status"""
    is_training: bool
    progress: float = Field(..., description="Fraction of training steps completed (0-1)")
    is_ready: bool
    last_error: Optional[str] = None
    last_result: Optional[Dict[str, Any]] = None
    weights_version: int = 0
    model_info: Optional[Dict[str, Any]] = None
