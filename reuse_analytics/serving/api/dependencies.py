"""
Request Dependencies
"""

from fastapi import HTTPException, Request

from reuse_analytics.serving.services import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Pipeline services not initialized")
    return services
