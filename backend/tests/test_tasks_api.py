# tests/test_tasks_api.py - Task CRUD and comments
from datetime import datetime, timezone

import pytest

from tests.conftest import auth_headers, create_task_via_api, org_url


def as_utc(value: str) -> datetime:
    # SQLite drops the offset on stored timestamps
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class TestCreateTask:
    @pytest.mark.asyncio
    async def test_create_with_defaults(self, client, member):
        task = await create_task_via_api(client, member, title="Draft agenda")

        assert task["title"] == "Draft agenda"
        assert task["status"] == "open"
        assert task["priority"] == "medium"
        assert task["description"] == ""
        assert task["tags"] == []
        assert task["organization_id"] == str(member.organization_id)
        assert task["created_by"]["name"] == "Mia Member"
        assert task["assignee"] is None
        assert task["completed_at"] is None

    @pytest.mark.asyncio
    async def test_client_cannot_choose_organization(self, client, admin, other_org):
        task = await create_task_via_api(
            client, admin, title="Sneaky", organization_id=str(other_org.id)
        )
        assert task["organization_id"] == str(admin.organization_id)

    @pytest.mark.asyncio
    async def test_tags_normalized(self, client, admin):
        task = await create_task_via_api(client, admin, tags=[" urgent", "urgent", "", "q3 "])
        assert task["tags"] == ["urgent", "q3"]

    @pytest.mark.asyncio
    async def test_create_done_sets_completed_at(self, client, admin):
        task = await create_task_via_api(client, admin, status="done")
        assert task["completed_at"] is not None

    @pytest.mark.asyncio
    async def test_response_envelope(self, client, admin):
        resp = await client.post(
            org_url(admin.organization_id, "/tasks"),
            json={"title": "Envelope"},
            headers=auth_headers(admin),
        )
        body = resp.json()
        assert body["success"] is True
        assert body["error"] is None
        assert body["data"]["title"] == "Envelope"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"title": ""},
            {"title": "x", "status": "archived"},
            {"title": "x", "priority": "urgent"},
            {"title": "x", "assignee_id": "not-a-uuid"},
        ],
    )
    async def test_invalid_payload_is_400(self, client, admin, payload):
        resp = await client.post(
            org_url(admin.organization_id, "/tasks"), json=payload, headers=auth_headers(admin)
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, admin):
        resp = await client.post(org_url(admin.organization_id, "/tasks"), json={"title": "x"})
        assert resp.status_code == 401


class TestListTasks:
    @pytest.mark.asyncio
    async def test_pagination_meta(self, client, admin):
        for i in range(5):
            await create_task_via_api(client, admin, title=f"Task {i}")

        resp = await client.get(
            org_url(admin.organization_id, "/tasks?page=2&limit=2"), headers=auth_headers(admin)
        )
        body = resp.json()
        assert body["meta"] == {"page": 2, "limit": 2, "total": 5}
        assert [t["title"] for t in body["data"]] == ["Task 2", "Task 1"]

    @pytest.mark.asyncio
    async def test_filters(self, client, admin, member):
        await create_task_via_api(client, admin, title="Fix billing bug", priority="critical")
        await create_task_via_api(
            client, admin, title="Write docs", status="in_progress", assignee_id=str(member.id)
        )
        await create_task_via_api(client, admin, title="Plan offsite", description="Billing review")
        base = org_url(admin.organization_id, "/tasks")
        headers = auth_headers(admin)

        resp = await client.get(f"{base}?status=in_progress", headers=headers)
        assert [t["title"] for t in resp.json()["data"]] == ["Write docs"]

        resp = await client.get(f"{base}?priority=critical", headers=headers)
        assert [t["title"] for t in resp.json()["data"]] == ["Fix billing bug"]

        resp = await client.get(f"{base}?assignee_id={member.id}", headers=headers)
        assert [t["title"] for t in resp.json()["data"]] == ["Write docs"]

        resp = await client.get(f"{base}?search=billing", headers=headers)
        assert {t["title"] for t in resp.json()["data"]} == {"Fix billing bug", "Plan offsite"}

    @pytest.mark.asyncio
    async def test_invalid_filter_is_400(self, client, admin):
        resp = await client.get(
            org_url(admin.organization_id, "/tasks?status=archived"), headers=auth_headers(admin)
        )
        assert resp.status_code == 400


class TestUpdateTask:
    @pytest.mark.asyncio
    async def test_partial_update(self, client, admin):
        task = await create_task_via_api(
            client, admin, title="Original", description="Keep me", priority="low"
        )

        resp = await client.put(
            org_url(admin.organization_id, f"/tasks/{task['id']}"),
            json={"priority": "high"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["priority"] == "high"
        assert data["title"] == "Original"
        assert data["description"] == "Keep me"

    @pytest.mark.asyncio
    async def test_null_title_is_ignored(self, client, admin):
        task = await create_task_via_api(client, admin, title="Original")

        resp = await client.put(
            org_url(admin.organization_id, f"/tasks/{task['id']}"),
            json={"title": None},
            headers=auth_headers(admin),
        )
        assert resp.json()["data"]["title"] == "Original"

    @pytest.mark.asyncio
    async def test_unassign(self, client, admin, member):
        task = await create_task_via_api(client, admin, assignee_id=str(member.id))

        resp = await client.put(
            org_url(admin.organization_id, f"/tasks/{task['id']}"),
            json={"assignee_id": None},
            headers=auth_headers(admin),
        )
        assert resp.json()["data"]["assignee_id"] is None

    @pytest.mark.asyncio
    async def test_completed_at_set_once(self, client, admin):
        task = await create_task_via_api(client, admin)
        url = org_url(admin.organization_id, f"/tasks/{task['id']}")
        headers = auth_headers(admin)

        done = (await client.put(url, json={"status": "done"}, headers=headers)).json()["data"]
        assert done["completed_at"] is not None

        reopened = (await client.put(url, json={"status": "open"}, headers=headers)).json()["data"]
        assert as_utc(reopened["completed_at"]) == as_utc(done["completed_at"])

        again = (await client.put(url, json={"status": "done"}, headers=headers)).json()["data"]
        assert as_utc(again["completed_at"]) == as_utc(done["completed_at"])

    @pytest.mark.asyncio
    async def test_missing_task_is_404(self, client, admin):
        resp = await client.put(
            org_url(admin.organization_id, "/tasks/00000000-0000-0000-0000-000000000000"),
            json={"title": "Ghost"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "Task not found"


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_admin_deletes(self, client, admin):
        task = await create_task_via_api(client, admin)
        url = org_url(admin.organization_id, f"/tasks/{task['id']}")

        resp = await client.delete(url, headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["data"] == {"message": "Task deleted"}

        assert (await client.get(url, headers=auth_headers(admin))).status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["manager", "member"])
    async def test_non_admin_cannot_delete(self, client, admin, manager, member, role):
        task = await create_task_via_api(client, admin)
        user = {"manager": manager, "member": member}[role]

        resp = await client.delete(
            org_url(user.organization_id, f"/tasks/{task['id']}"), headers=auth_headers(user)
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == f"Role '{role}' does not have 'delete' permission on 'tasks'"


class TestComments:
    @pytest.mark.asyncio
    async def test_add_and_list(self, client, admin, member):
        task = await create_task_via_api(client, admin)
        url = org_url(admin.organization_id, f"/tasks/{task['id']}/comments")

        resp = await client.post(url, json={"body": "  First pass done  "}, headers=auth_headers(member))
        assert resp.status_code == 201
        comment = resp.json()["data"]
        assert comment["body"] == "First pass done"
        assert comment["user"]["name"] == "Mia Member"

        await client.post(url, json={"body": "Thanks"}, headers=auth_headers(admin))

        resp = await client.get(url, headers=auth_headers(admin))
        assert [c["body"] for c in resp.json()["data"]] == ["First pass done", "Thanks"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["", "   "])
    async def test_blank_comment_is_400(self, client, admin, body):
        task = await create_task_via_api(client, admin)

        resp = await client.post(
            org_url(admin.organization_id, f"/tasks/{task['id']}/comments"),
            json={"body": body},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
