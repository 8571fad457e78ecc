"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks.
"""

import logging
import os

from django.apps import apps
from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    This endpoint is used by:
    - Docker health checks
    - Kubernetes liveness/readiness probes
    - Load balancers

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - storage: "writable" or "unavailable" (billing data directory)
        - services: "ready" or "unavailable"

    HTTP Status Codes:
        200: All systems operational
        503: One or more systems unhealthy

    Example Response:
        {
            "status": "healthy",
            "storage": "writable",
            "services": "ready"
        }
    """
    health_status = {
        "status": "healthy",
        "storage": "unavailable",
        "services": "unavailable",
    }
    is_healthy = True

    data_dir = settings.BILLING_DATA_DIR
    if os.path.isdir(data_dir) and os.access(data_dir, os.W_OK):
        health_status["storage"] = "writable"
    else:
        logger.warning(f"Billing data directory is not writable: {data_dir}")
        is_healthy = False

    if getattr(apps.get_app_config("billing"), "services", None) is not None:
        health_status["services"] = "ready"
    else:
        is_healthy = False

    if not is_healthy:
        health_status["status"] = "unhealthy"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
