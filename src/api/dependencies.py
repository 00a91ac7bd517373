"""FastAPI dependencies.

Shared resources are created in the application lifespan and stored on
`app.state`; these dependencies hand them to the route handlers.
"""

import httpx
from fastapi import Request


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared outbound HTTP client from application state.

    Raises:
        RuntimeError: If the lifespan did not create the client
    """
    http_client = getattr(request.app.state, "http_client", None)
    if http_client is None:
        raise RuntimeError("HTTP client not found in application state. Ensure the app was created with create_app().")
    return http_client
