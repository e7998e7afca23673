from typing import List, Optional
from pydantic import BaseModel, Field

SOURCES = ("cache", "model", "llm", "extractor")


class SubTransaction(BaseModel):
    """One transaction of a multi-transaction note"""

    amount: Optional[float] = None
    note: Optional[str] = None
    category_id: Optional[str] = None
    io: str = "OUT"


class CachedPrediction(BaseModel):
    """Classification result returned to clients and stored in the cache"""

    amount: Optional[float] = Field(None, description="Amount in VND")
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    io: str = Field("OUT", description="IN or OUT")
    confidence: float = Field(0.0, description="Category confidence (0-1)")
    note: str = ""
    date: Optional[str] = Field(None, description="ISO date of the transaction")
    is_multiple: bool = False
    transactions: List[SubTransaction] = Field(default_factory=list)
    message: str = ""
    overall_confidence: float = 0.0
    source: str = Field("extractor", description="cache | model | llm | extractor")
    sample_id: Optional[str] = Field(None, description="Training log row for this event")


class CacheEntry(BaseModel):
    result: CachedPrediction
    timestamp: float
    hit_count: int = 0
    text_hash: str
    normalized_text: str
