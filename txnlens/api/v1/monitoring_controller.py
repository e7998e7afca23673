from fastapi import APIRouter, status, Depends
from fastapi.responses import JSONResponse

from txnlens.core.dependencies import get_monitoring_service
from txnlens.core.exceptions import InternalServerErrorException, ResponseBody
from txnlens.schemas.classification_schema import AccuracyStats, LatencyStats
from txnlens.services.monitoring import MonitoringService

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get(
    "/latency",
    status_code=status.HTTP_200_OK,
    summary="Classification latency",
    description="Count, mean and p95 latency per operation over the recent latency window.",
)
async def latency(service: MonitoringService = Depends(get_monitoring_service)):
    try:
        summary = await service.latency_summary()
    except Exception as e:
        raise InternalServerErrorException(message="Failed to load latency metrics", errors=[str(e)])

    resp = ResponseBody(
        message="Latency metrics retrieved successfully",
        errors=[],
        data={name: LatencyStats(**stats).model_dump() for name, stats in summary.items()},
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())


@router.get(
    "/accuracy",
    status_code=status.HTTP_200_OK,
    summary="Prediction accuracy",
    description="Share of accepted corrections where the proposal matched the chosen category.",
)
async def accuracy(service: MonitoringService = Depends(get_monitoring_service)):
    try:
        stats = await service.accuracy_rate()
    except Exception as e:
        raise InternalServerErrorException(message="Failed to load accuracy metrics", errors=[str(e)])

    resp = ResponseBody(
        message="Accuracy metrics retrieved successfully",
        errors=[],
        data=AccuracyStats(**stats).model_dump(),
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=resp.model_dump())
