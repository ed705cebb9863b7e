from fastapi import Request

from app.services.gateway_service import GatewayService
from sqlgate.errors import NoDatabaseConfigured


def get_gateway_service(request: Request) -> GatewayService:
    """
    The GatewayService built once in the app lifespan.

    Tests replace this through app.dependency_overrides with a service
    around a fabricated registry.
    """
    svc = getattr(request.app.state, "gateway", None)
    if svc is None:
        raise NoDatabaseConfigured("Gateway is not initialised")
    return svc
