"""
Aggregate v1 API routes.

Convention: Use "" (not "/") for the root path of a segment (e.g. @router.get(""))
so the route is /api/v1/connections not /api/v1/connections/, avoiding 307 redirects.
"""

from fastapi import APIRouter

from syncbridge.api.v1.endpoints import connections, mappings, schema, sync

api_router = APIRouter()

api_router.include_router(connections.router, prefix="")
api_router.include_router(schema.router, prefix="")
api_router.include_router(mappings.router, prefix="")
api_router.include_router(sync.router, prefix="")
