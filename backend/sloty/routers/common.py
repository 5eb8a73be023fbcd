# backend/sloty/routers/common.py

from fastapi import Header, HTTPException

from ..services.slots.errors import SchedulingError


def get_tenant_id(x_tenant_id: int = Header(..., ge=1)) -> int:
    """Tenant scope, set by the upstream gateway after authentication."""
    return x_tenant_id


def scheduling_http_error(err: SchedulingError) -> HTTPException:
    """Translate a scheduling error into its HTTP response."""
    return HTTPException(status_code=err.http_status, detail=err.to_dict())
