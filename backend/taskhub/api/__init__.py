"""API router package."""

from fastapi import APIRouter

from taskhub.api.v1 import (
    audit_logs,
    auth,
    dashboard,
    health,
    notifications,
    organizations,
    reports,
    task_templates,
    tasks,
    users,
)

ORG_PREFIX = "/orgs/{org_id}"

router = APIRouter()

router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Organization-scoped routers; the org id in the path must match the token
router.include_router(organizations.router, prefix=ORG_PREFIX, tags=["Organizations"])
router.include_router(tasks.router, prefix=f"{ORG_PREFIX}/tasks", tags=["Tasks"])
router.include_router(
    task_templates.router, prefix=f"{ORG_PREFIX}/task-templates", tags=["Task Templates"]
)
router.include_router(users.router, prefix=f"{ORG_PREFIX}/users", tags=["Users"])
router.include_router(
    notifications.router, prefix=f"{ORG_PREFIX}/notifications", tags=["Notifications"]
)
router.include_router(audit_logs.router, prefix=f"{ORG_PREFIX}/audit-logs", tags=["Audit Logs"])
router.include_router(dashboard.router, prefix=f"{ORG_PREFIX}/dashboard", tags=["Dashboard"])
router.include_router(reports.router, prefix=f"{ORG_PREFIX}/reports", tags=["Reports"])
