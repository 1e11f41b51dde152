"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from src.api.deps import StoreDep
from src.core.exceptions import StorageError
from src.core.supabase import check_database_connection
from src.schemas.common import CheckResult, HealthResponse, HealthStatus, ReadinessResponse, StoreStats

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check with checkout store statistics. Used for liveness checks.",
)
async def health_check(store: StoreDep) -> HealthResponse:
    """Return basic health status and store counters.

    Store statistics are omitted if the store cannot be reached.

    Returns:
        HealthResponse: Current health status with timestamp.
    """
    try:
        stats = StoreStats(**await store.get_stats())
    except StorageError:
        stats = None
    return HealthResponse(status=HealthStatus.HEALTHY, store_stats=stats)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Readiness check",
    description="Check if the checkout store is reachable. Used for readiness checks.",
)
async def readiness_check(response: Response, store: StoreDep) -> ReadinessResponse:
    """Check readiness of the checkout store.

    Returns 503 if any dependency is unhealthy.

    Args:
        response: FastAPI response object for setting status code.
        store: The checkout store.

    Returns:
        ReadinessResponse: Status of all dependency checks.
    """
    checks: list[CheckResult] = []

    # Check Supabase connectivity when sessions are persisted there
    if store.backend == "supabase":
        start_time = time.perf_counter()
        db_result = await check_database_connection()
        latency_ms = (time.perf_counter() - start_time) * 1000
        checks.append(
            CheckResult(
                name="supabase",
                healthy=db_result["healthy"],
                latency_ms=round(latency_ms, 2),
                error=db_result.get("error"),
            )
        )

    # Check the store itself
    start_time = time.perf_counter()
    try:
        await store.count()
        store_healthy, store_error = True, None
    except StorageError as e:
        store_healthy, store_error = False, e.message
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks.append(
        CheckResult(
            name=f"checkout_store:{store.backend}",
            healthy=store_healthy,
            latency_ms=round(latency_ms, 2),
            error=store_error,
        )
    )

    all_healthy = all(check.healthy for check in checks)
    overall_status = HealthStatus.HEALTHY if all_healthy else HealthStatus.UNHEALTHY

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=overall_status, checks=checks)
