from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class MLTrainingSample(BaseModel):
    """Prediction event / correction record for MongoDB"""

    id: Optional[str] = Field(None, alias="_id")
    user_id: str = Field(..., description="User who sent the note")
    text: str = Field(..., description="Raw transaction note")
    amount: Optional[float] = Field(None, description="Extracted amount in VND")
    io: str = Field("OUT", description="IN (income) or OUT (spending)")
    predicted_category_id: Optional[str] = Field(
        None, description="Category proposed by the pipeline"
    )
    chosen_category_id: Optional[str] = Field(
        None, description="Category the user confirmed; null until corrected"
    )
    confidence: Optional[float] = Field(None, description="Confidence of the proposal (0-1)")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True
        populate_by_name = True
