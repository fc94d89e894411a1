from typing import Annotated

from fastapi import Depends, Request

from app.core.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    """Return the service container built by the application lifespan."""
    return request.app.state.services


ServicesDep = Annotated[ServiceContainer, Depends(get_services)]
