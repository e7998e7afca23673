from fastapi import APIRouter, Request, status, Depends
from fastapi.responses import JSONResponse

from txnlens.core.dependencies import get_current_user_id, get_services, get_training_service
from txnlens.core.exceptions import BadRequestException, ResponseBody
from txnlens.schemas.classification_schema import TrainingStatusResponse
from txnlens.services.model_training_service import ModelTrainingService

router = APIRouter(prefix="/model", tags=["model"])


def _status_payload(request: Request, service: ModelTrainingService) -> dict:
    services = get_services(request)
    return TrainingStatusResponse(
        **service.status(),
        weights_version=services.classifier.weights_version,
        model_info=services.model_store.get_model_info(),
    ).model_dump()


@router.post(
    "/train",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start classifier training",
    description="Train a fresh classifier from the user's corrections (plus the seed corpus when there are too few). Runs in the background.",
)
async def start_training(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    service: ModelTrainingService = Depends(get_training_service),
):
    if not service.start_training(user_id):
        raise BadRequestException(
            message="Training is already running",
            errors=["Cancel the current run or wait for it to finish"],
        )

    resp = ResponseBody(
        message="Training started",
        errors=[],
        data=_status_payload(request, service),
    )
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=resp.model_dump())


@router.post(
    "/train/cancel",
    status_code=status.HTTP_200_OK,
    summary="Cancel classifier training",
    description="Stop the running training job. The live model is left unchanged.",
)
async def cancel_training(
    request: Request,
    service: ModelTrainingService = Depends(get_training_service),
):
    cancelled = service.cancel_training()
    resp = ResponseBody(
        message="Training cancellation requested" if cancelled else "No training is running",
        errors=[],
        data=_status_payload(request, service),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.get(
    "/status",
    status_code=status.HTTP_200_OK,
    summary="Classifier status",
    description="Training progress, readiness and persisted model information.",
)
async def model_status(
    request: Request,
    service: ModelTrainingService = Depends(get_training_service),
):
    resp = ResponseBody(
        message="Model status retrieved successfully",
        errors=[],
        data=_status_payload(request, service),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())
