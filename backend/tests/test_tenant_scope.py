# tests/test_tenant_scope.py - Organization isolation
import uuid

import pytest

from taskhub.core.exceptions import AuthorizationError, NotFoundError
from taskhub.models.task import Task
from taskhub.services.tenant_scope import TenantScope, enforce_path_org
from tests.conftest import auth_headers, create_task_via_api, org_url


class TestEnforcePathOrg:
    def test_matching_org(self):
        org_id = uuid.uuid4()
        enforce_path_org(str(org_id), org_id)

    def test_mismatched_org(self):
        with pytest.raises(AuthorizationError):
            enforce_path_org(str(uuid.uuid4()), uuid.uuid4())


class TestTenantScope:
    @pytest.mark.asyncio
    async def test_add_stamps_scope_org(self, scope, db_session, org, other_org, admin):
        task = Task(title="Stamped", organization_id=other_org.id, created_by_id=admin.id)
        scope.add(task)
        await db_session.commit()

        assert task.organization_id == org.id

    @pytest.mark.asyncio
    async def test_other_org_rows_are_invisible(self, db_session, org, other_org, admin, outsider):
        theirs = Task(title="Globex plan", created_by_id=outsider.id)
        TenantScope(db_session, other_org.id).add(theirs)
        await db_session.commit()

        scope = TenantScope(db_session, org.id)
        assert await scope.get(Task, theirs.id) is None
        assert await scope.count(Task) == 0
        with pytest.raises(NotFoundError):
            await scope.get_or_404(Task, theirs.id, "Task")

    @pytest.mark.asyncio
    async def test_select_filters_by_org(self, db_session, org, other_org, admin, outsider):
        TenantScope(db_session, org.id).add(Task(title="Ours", created_by_id=admin.id))
        TenantScope(db_session, other_org.id).add(Task(title="Theirs", created_by_id=outsider.id))
        await db_session.commit()

        result = await db_session.execute(TenantScope(db_session, org.id).select(Task))
        assert [t.title for t in result.scalars().all()] == ["Ours"]


class TestCrossTenantRequests:
    @pytest.mark.asyncio
    async def test_path_org_mismatch_is_forbidden(self, client, admin, other_org):
        resp = await client.get(org_url(other_org.id, "/tasks"), headers=auth_headers(admin))

        assert resp.status_code == 403
        assert resp.json() == {"success": False, "data": None, "error": "Forbidden"}

    @pytest.mark.asyncio
    async def test_path_check_precedes_permission_check(self, client, member, other_org):
        resp = await client.get(org_url(other_org.id, "/audit-logs"), headers=auth_headers(member))

        assert resp.status_code == 403
        assert resp.json()["error"] == "Forbidden"

    @pytest.mark.asyncio
    async def test_other_org_task_is_not_found(self, client, admin, outsider):
        task = await create_task_via_api(client, outsider, title="Globex roadmap")
        url = org_url(admin.organization_id, f"/tasks/{task['id']}")
        headers = auth_headers(admin)

        assert (await client.get(url, headers=headers)).status_code == 404
        assert (await client.put(url, json={"title": "Hijacked"}, headers=headers)).status_code == 404
        assert (await client.delete(url, headers=headers)).status_code == 404
        resp = await client.post(f"{url}/comments", json={"body": "hello"}, headers=headers)
        assert resp.status_code == 404

        resp = await client.get(
            org_url(outsider.organization_id, f"/tasks/{task['id']}"),
            headers=auth_headers(outsider),
        )
        assert resp.json()["data"]["title"] == "Globex roadmap"

    @pytest.mark.asyncio
    async def test_task_list_only_shows_own_org(self, client, admin, outsider):
        await create_task_via_api(client, admin, title="Acme task")
        await create_task_via_api(client, outsider, title="Globex task")

        resp = await client.get(org_url(admin.organization_id, "/tasks"), headers=auth_headers(admin))

        assert [t["title"] for t in resp.json()["data"]] == ["Acme task"]
        assert resp.json()["meta"]["total"] == 1

    @pytest.mark.asyncio
    async def test_cannot_assign_user_from_other_org(self, client, admin, outsider):
        resp = await client.post(
            org_url(admin.organization_id, "/tasks"),
            json={"title": "Borrowed help", "assignee_id": str(outsider.id)},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Assignee must be a member of the organization"

    @pytest.mark.asyncio
    async def test_users_listing_scoped(self, client, admin, member, outsider):
        resp = await client.get(org_url(admin.organization_id, "/users"), headers=auth_headers(admin))

        emails = {u["email"] for u in resp.json()["data"]}
        assert emails == {admin.email, member.email}
