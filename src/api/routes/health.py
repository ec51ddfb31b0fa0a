"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from src.api.deps import ClientsDep
from src.api.middleware.latency_logging import get_latency_stats
from src.core.supabase import check_database_connection
from src.schemas.common import (
    CheckResult,
    HealthResponse,
    HealthStatus,
    ReadinessResponse,
    ServiceStatusResponse,
)

router = APIRouter(tags=["health"])


@router.get(
    "/",
    response_model=ServiceStatusResponse,
    summary="Service status",
    description="Reports service status, Stripe mode and how bearer tokens are verified. Never exposes secrets.",
)
async def service_status(clients: ClientsDep) -> ServiceStatusResponse:
    """Return status and configuration diagnostics.

    Args:
        clients: Startup clients, used for their settings.

    Returns:
        ServiceStatusResponse: Status, timestamp and diagnostics.
    """
    settings = clients.settings
    return ServiceStatusResponse(
        status=HealthStatus.HEALTHY,
        environment=settings.app_env,
        stripe_mode="test" if settings.is_stripe_test_mode else "live",
        token_verification="local" if settings.verifies_tokens_locally else "supabase_auth",
        requests=get_latency_stats().get_stats(),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness probes.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.

    Returns:
        HealthResponse: Current health status with timestamp.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Readiness check",
    description="Check if the datastore is reachable. Used for readiness probes.",
)
async def readiness_check(response: Response, clients: ClientsDep) -> ReadinessResponse:
    """Check readiness of all dependencies.

    Returns 503 if any dependency is unhealthy.

    Args:
        response: FastAPI response object for setting status code.
        clients: Startup clients.

    Returns:
        ReadinessResponse: Status of all dependency checks.
    """
    checks: list[CheckResult] = []

    start_time = time.perf_counter()
    db_result = await check_database_connection(clients.supabase)
    latency_ms = (time.perf_counter() - start_time) * 1000

    checks.append(
        CheckResult(
            name="database",
            healthy=db_result["healthy"],
            latency_ms=round(latency_ms, 2),
            error=db_result.get("error"),
        )
    )

    all_healthy = all(check.healthy for check in checks)
    overall_status = HealthStatus.HEALTHY if all_healthy else HealthStatus.UNHEALTHY

    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(status=overall_status, checks=checks)
