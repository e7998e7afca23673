import asyncio

from fastapi import APIRouter, status, Depends
from fastapi.responses import JSONResponse

from txnlens.core.dependencies import (
    get_current_user_id,
    get_evaluation_service,
    get_pipeline,
    get_training_log_repository,
)
from txnlens.core.exceptions import (
    InternalServerErrorException,
    NotFoundException,
    UnknownCategoryError,
    ResponseBody,
)
from txnlens.repositories.training_log_repository import TrainingLogRepository
from txnlens.schemas.classification_schema import (
    ClassifyRequest,
    ConfusionPair,
    CorrectionRequest,
    CorrectionResponse,
    EvaluationResponse,
)
from txnlens.services.classification_pipeline import ClassificationPipeline
from txnlens.services.evaluation_service import EvaluationService


router = APIRouter(tags=["classification"])


@router.post(
    "/classify",
    status_code=status.HTTP_200_OK,
    summary="Classify a transaction note",
    description="Turn a free-text note such as 'ăn trưa 50k' into amount, direction, date and a proposed category.",
)
async def classify(
    body: ClassifyRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: ClassificationPipeline = Depends(get_pipeline),
):
    """Run the cache -> model -> LLM -> extractor pipeline"""
    try:
        result = await pipeline.classify(body.text, user_id)
    except Exception as e:
        raise InternalServerErrorException(message="Failed to classify note", errors=[str(e)])

    resp = ResponseBody(
        message=result.message or "Classification completed",
        errors=[],
        data=result.model_dump(mode="json"),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.post(
    "/corrections",
    status_code=status.HTTP_200_OK,
    summary="Accept or correct a proposed category",
    description="Record the category the user chose for a classified note. The classifier learns from it in the background.",
)
async def accept_correction(
    body: CorrectionRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: ClassificationPipeline = Depends(get_pipeline),
):
    try:
        accepted = await pipeline.accept_correction(body.sample_id, body.category_id, user_id)
    except (NotFoundException, UnknownCategoryError):
        raise
    except Exception as e:
        raise InternalServerErrorException(message="Failed to record correction", errors=[str(e)])

    resp = ResponseBody(
        message="Correction recorded" if accepted else "Sample was already corrected",
        errors=[],
        data=CorrectionResponse(
            sample_id=body.sample_id,
            category_id=body.category_id,
            accepted=accepted,
        ).model_dump(),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.get(
    "/training-log/confusion-pairs",
    status_code=status.HTTP_200_OK,
    summary="Predicted vs chosen category counts",
    description="Count how often each proposed category was corrected to each chosen category for the current user.",
)
async def confusion_pairs(
    user_id: str = Depends(get_current_user_id),
    repo: TrainingLogRepository = Depends(get_training_log_repository),
):
    try:
        pairs = await asyncio.to_thread(repo.confusion_pairs, user_id)
    except Exception as e:
        raise InternalServerErrorException(message="Failed to load confusion pairs", errors=[str(e)])

    resp = ResponseBody(
        message="Confusion pairs retrieved successfully",
        errors=[],
        data=[ConfusionPair(**p).model_dump() for p in pairs],
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.get(
    "/training-log/evaluation",
    status_code=status.HTTP_200_OK,
    summary="Evaluate proposals against user choices",
    description="Accuracy, macro F1, disagreement rate and per-category report over corrected samples.",
)
async def evaluation(
    user_id: str = Depends(get_current_user_id),
    service: EvaluationService = Depends(get_evaluation_service),
):
    try:
        report = await service.evaluate(user_id)
    except Exception as e:
        raise InternalServerErrorException(message="Failed to evaluate", errors=[str(e)])

    resp = ResponseBody(
        message="Evaluation completed",
        errors=[],
        data=EvaluationResponse(**report).model_dump(),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())
