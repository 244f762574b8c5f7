from fastapi import APIRouter, Depends

from kubegate.api.routes import auth, cluster, deployments, events, health, metrics, namespaces, nodes, pods, services
from kubegate.core.auth import require_identity

# Public router (no auth required): login, token validation and health
public_router = APIRouter(prefix="/api")
public_router.include_router(auth.router)
public_router.include_router(health.router)

# Secure router: every endpoint passes the access gate first. The included routers use
# GatedRoute so the gate also runs before the request body is parsed.
api_router = APIRouter(prefix="/api", dependencies=[Depends(require_identity)])
api_router.include_router(cluster.router)
api_router.include_router(nodes.router)
api_router.include_router(namespaces.router)
api_router.include_router(events.router)
api_router.include_router(metrics.router)
api_router.include_router(deployments.router)
api_router.include_router(services.router)
api_router.include_router(pods.router)
