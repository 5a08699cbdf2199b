from __future__ import annotations

from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


# Label read by the slow-query listener; jobs and scripts run as 'background'.
current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')


class EndpointNameRoute(APIRoute):
    """Tags slow-query log lines with the route that issued them."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def custom_handler(request: Request):
            token = current_endpoint.set(f"{request.method} {self.path}")
            try:
                return await original_handler(request)
            finally:
                current_endpoint.reset(token)

        return custom_handler
