"""Liveness, readiness and component health endpoints."""

from datetime import datetime
from typing import Any, Dict
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import AppConfig
from ..core.health import health_checker
from .dependencies import get_app_config

router = APIRouter(tags=["health"])

# Checks that must pass before the instance takes traffic
READINESS_CHECKS = ("database",)


def _service_name(config: AppConfig) -> str:
    return config.app_name.lower().replace(" ", "-")


@router.get("/")
async def root(config: AppConfig = Depends(get_app_config)) -> Dict[str, Any]:
    return {"message": f"{config.app_name} is running", "version": config.app_version}


@router.get("/health")
async def health(config: AppConfig = Depends(get_app_config)) -> Dict[str, Any]:
    """Cheap check for load balancers; touches no dependencies."""
    return {"status": "healthy", "service": _service_name(config), "version": config.app_version}


@router.get("/health/detailed")
async def health_detailed(config: AppConfig = Depends(get_app_config)) -> JSONResponse:
    """Run every registered component check; 503 if any of them fails."""
    results = await health_checker.run_all_checks()
    return JSONResponse(
        status_code=200 if results["overall_status"] == "healthy" else 503,
        content={"service": _service_name(config), "version": config.app_version, **results}
    )


@router.get("/health/ready")
async def health_ready() -> JSONResponse:
    checks = {
        name: await health_checker.run_check(name)
        for name in READINESS_CHECKS if name in health_checker.checks
    }
    ready = all(check["status"] == "healthy" for check in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"ready": ready, "checks": checks, "timestamp": datetime.utcnow().isoformat()}
    )


@router.get("/health/live")
async def health_live() -> Dict[str, Any]:
    return {"alive": True, "timestamp": datetime.utcnow().isoformat()}
