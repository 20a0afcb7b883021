"""
Identity resolution for scheduling requests.

Order: dashboard session, then (optional) internal API key check, then
workflow id lookup, then explicit tenant id.
"""

import hmac

from bookingdesk.config import settings
from bookingdesk.db.helpers import DatabaseError, fetch_one, with_db_retry
from bookingdesk.db.pool import db_pool
from bookingdesk.infrastructure.observability.logging import get_logger
from bookingdesk.models.domain.scheduling_domain import ResolvedIdentity
from bookingdesk.services.scheduling.errors import (
    AuthorizationError,
    IntegrationNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)

logger = get_logger(__name__)


@with_db_retry(max_retries=2, base_delay=0.1)
async def _fetch_workflow_owner(workflow_id: str) -> dict | None:
    query = """
    SELECT user_id
    FROM workflows
    WHERE id::text = %s OR n8n_workflow_id = %s
    LIMIT 1
    """
    return await fetch_one(query, (workflow_id, workflow_id))


async def lookup_workflow_tenant(workflow_id: str) -> str:
    """
    Tenant owning a workflow, matched by our id or the automation engine's id.

    Raises:
        ServiceUnavailableError: Database unavailable
        IntegrationNotFoundError: Unknown workflow
    """
    if not db_pool.initialized:
        raise ServiceUnavailableError("Database not available")

    try:
        row = await _fetch_workflow_owner(workflow_id)
    except DatabaseError as e:
        logger.error("Database error looking up workflow", workflow_id=workflow_id, error=str(e))
        raise ServiceUnavailableError("Database not available", details=str(e)) from e

    if not row:
        raise IntegrationNotFoundError("Workflow not found")
    return str(row["user_id"])


def check_api_key(api_key: str | None) -> None:
    """Reject a supplied key that does not match the configured one."""
    expected = settings.internal_api_key()
    if expected and api_key and not hmac.compare_digest(api_key, expected):
        raise AuthorizationError("Invalid API key")


async def resolve_identity(
    claims: dict | None,
    tenant_id: str | None = None,
    workflow_id: str | None = None,
    api_key: str | None = None,
) -> ResolvedIdentity:
    """
    Map an inbound identity reference to a tenant.

    Args:
        claims: Verified session claims, if the caller sent a bearer token
        tenant_id: Explicit tenant id from the body
        workflow_id: Workflow id (ours or the automation engine's)
        api_key: Internal API key from the body

    Raises:
        AuthorizationError: Session/tenant mismatch (403) or bad API key (401)
        ValidationError: Neither workflow nor tenant id supplied
    """
    session_user = (claims or {}).get("sub")
    if session_user:
        if tenant_id and tenant_id != session_user:
            raise AuthorizationError(
                "Forbidden: Tenant ID does not match session", status_code=403
            )
        return ResolvedIdentity(tenant_id=str(session_user), source="session")

    check_api_key(api_key)

    if workflow_id:
        tenant = await lookup_workflow_tenant(str(workflow_id))
        logger.debug("Resolved tenant from workflow", workflow_id=workflow_id, tenant_id=tenant)
        return ResolvedIdentity(tenant_id=tenant, source="workflow")

    if tenant_id:
        return ResolvedIdentity(tenant_id=str(tenant_id), source="tenant")

    raise ValidationError("workflowId or tenantId is required", field="workflowId")
