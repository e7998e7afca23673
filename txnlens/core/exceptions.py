"""
Common response models and exceptions for API and ML services
"""
from typing import Any, Optional, List
from pydantic import BaseModel, Field


class ResponseBody(BaseModel):
    """Common API response structure"""
    message: str = Field(..., description="Response message")
    errors: List[str] = Field(default_factory=list, description="List of error messages")
    data: Optional[Any] = Field(default=None, description="Response data")

    class Config:
        from_attributes = True


class UnprocessableEntityException(Exception):
    """Exception for unprocessable entity (422)"""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


class BadRequestException(Exception):
    """Exception for bad request (400)"""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


class NotFoundException(Exception):
    """Exception for missing resources (404)"""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


class InternalServerErrorException(Exception):
    """Exception for internal server error (500)"""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = "Sorry something went wrong"
        self.detail = message
        self.errors = errors or []
        super().__init__(self.message)


class UnknownCategoryError(Exception):
    """Raised when a category id has no label index in the classifier's label map"""
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category '{category_id}' has no label index")


class TrainingCancelledError(Exception):
    """Raised inside a training run when its cancellation flag is observed"""
