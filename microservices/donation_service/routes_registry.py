"""
Donation Service Routes Registry

Defines service metadata and the route table with the access level of each route.
"""

SERVICE_METADATA = {
    "service_name": "donation_service",
    "version": "1.0.0",
    "tags": ["donation", "campaign", "ledger", "v1"],
    "capabilities": [
        "online_donations",
        "offline_donations",
        "campaign_management",
        "ledger_reconciliation",
    ],
}

# access: "public" (no headers), "user" (X-User-ID), "admin" (X-User-Role admin/super_admin)
SERVICE_ROUTES = [
    {"path": "/health", "methods": ["GET"], "access": "public", "description": "Health check"},
    {"path": "/health/ready", "methods": ["GET"], "access": "public", "description": "Readiness check"},
    {"path": "/health/live", "methods": ["GET"], "access": "public", "description": "Liveness check"},
    {"path": "/api/v1/donations/gateway/create-order", "methods": ["POST"], "access": "public", "description": "Create gateway order"},
    {"path": "/api/v1/donations/gateway/verify", "methods": ["POST"], "access": "public", "description": "Verify gateway payment"},
    {"path": "/api/v1/donations/offline", "methods": ["POST"], "access": "admin", "description": "Record offline donation"},
    {"path": "/api/v1/donations/reconcile", "methods": ["POST"], "access": "admin", "description": "Run ledger reconciliation"},
    {"path": "/api/v1/donations", "methods": ["GET"], "access": "user", "description": "List donations"},
    {"path": "/api/v1/donations/campaign/{campaign_id}/summary", "methods": ["GET"], "access": "user", "description": "Campaign donation summary"},
    {"path": "/api/v1/donations/campaign/{campaign_id}/recent", "methods": ["GET"], "access": "public", "description": "Recent donations feed"},
    {"path": "/api/v1/donations/{donation_id}", "methods": ["GET"], "access": "user", "description": "Get donation"},
    {"path": "/api/v1/donations/{donation_id}", "methods": ["PUT", "DELETE"], "access": "admin", "description": "Update or delete donation"},
    {"path": "/api/v1/campaigns", "methods": ["POST"], "access": "admin", "description": "Create campaign"},
    {"path": "/api/v1/campaigns", "methods": ["GET"], "access": "user", "description": "List campaigns"},
    {"path": "/api/v1/campaigns/public", "methods": ["GET"], "access": "public", "description": "List public campaigns"},
    {"path": "/api/v1/campaigns/code/{campaign_code}", "methods": ["GET"], "access": "public", "description": "Get campaign by code"},
    {"path": "/api/v1/campaigns/{campaign_id}", "methods": ["GET"], "access": "user", "description": "Get campaign with stats"},
    {"path": "/api/v1/campaigns/{campaign_id}", "methods": ["PUT", "DELETE"], "access": "admin", "description": "Update or delete campaign"},
]


def get_routes_summary():
    """Route metadata for service discovery and docs"""
    paths = sorted({r["path"] for r in SERVICE_ROUTES})
    return {
        "route_count": str(len(paths)),
        "routes": ",".join(paths),
        "admin_routes": str(sum(1 for r in SERVICE_ROUTES if r["access"] == "admin")),
        "api_version": "v1",
        "base_path": "/api/v1",
    }


def get_route_access(path: str, method: str) -> str:
    """Access level registered for a route; unknown routes are treated as admin"""
    for route in SERVICE_ROUTES:
        if route["path"] == path and method.upper() in route["methods"]:
            return route["access"]
    return "admin"


__all__ = ["SERVICE_METADATA", "SERVICE_ROUTES", "get_routes_summary", "get_route_access"]
