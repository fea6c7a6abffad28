"""
In-app notification tests: fan-out from the approval workflow and the
per-user notification API.
"""

import pytest

from sitebook.models import db
from sitebook.models.notification import Notification
from sitebook.services.notification_service import NotificationService

API = "/api/v1"


def _submit_and_decide(client, admin, member, project, auth_headers, decision="rejected", remarks=None):
    res = client.post(
        f"{API}/tasks", json={"project_id": project.id, "title": "Lift pit"}, headers=auth_headers(member),
    )
    task_id = res.get_json()["id"]
    client.post(
        f"{API}/approvals",
        json={"id": task_id, "module": "task", "status": decision, "remarks": remarks},
        headers=auth_headers(admin),
    )
    return task_id


class TestWorkflowNotifications:
    def test_admin_told_about_submission(self, client, admin, member, project, auth_headers):
        client.post(f"{API}/tasks", json={"project_id": project.id, "title": "Lift pit"}, headers=auth_headers(member))

        body = client.get(f"{API}/notifications", headers=auth_headers(admin)).get_json()
        assert body["unread_count"] == 1
        notif = body["items"][0]
        assert notif["type"] == "submitted"
        assert notif["item_type"] == "task"

    def test_submitter_told_about_rejection(self, client, admin, member, project, auth_headers):
        task_id = _submit_and_decide(client, admin, member, project, auth_headers, remarks="depth unclear")

        body = client.get(f"{API}/notifications", headers=auth_headers(member)).get_json()
        assert body["total"] == 1
        notif = body["items"][0]
        assert notif["type"] == "rejected"
        assert notif["item_id"] == task_id
        assert notif["message"].endswith("depth unclear")

    def test_inactive_admins_are_skipped(self, client, admin, member, project, make_user, auth_headers):
        make_user("retired@acme.io", role="admin", is_active=False)
        client.post(f"{API}/tasks", json={"project_id": project.id, "title": "x"}, headers=auth_headers(member))
        assert {n.user_id for n in Notification.query.all()} == {admin.id}


class TestNotificationApi:
    def test_mark_read_and_unread(self, client, admin, member, project, auth_headers):
        _submit_and_decide(client, admin, member, project, auth_headers)
        nid = client.get(f"{API}/notifications", headers=auth_headers(member)).get_json()["items"][0]["id"]

        res = client.patch(f"{API}/notifications/{nid}", json={}, headers=auth_headers(member))
        assert res.get_json()["is_read"] is True
        assert res.get_json()["read_at"] is not None

        res = client.patch(f"{API}/notifications/{nid}", json={"is_read": False}, headers=auth_headers(member))
        assert res.get_json()["is_read"] is False

    def test_unread_filter_and_read_all(self, client, admin, member, project, auth_headers):
        _submit_and_decide(client, admin, member, project, auth_headers)
        _submit_and_decide(client, admin, member, project, auth_headers, decision="approved")

        res = client.post(f"{API}/notifications/read-all", headers=auth_headers(member))
        assert res.get_json() == {"marked_read": 2}

        body = client.get(f"{API}/notifications?unread=true", headers=auth_headers(member)).get_json()
        assert body["items"] == []
        assert body["unread_count"] == 0

    def test_cannot_touch_someone_elses_notification(self, client, admin, member, project, auth_headers):
        _submit_and_decide(client, admin, member, project, auth_headers)
        nid = Notification.query.filter_by(user_id=member.id).one().id

        assert client.patch(f"{API}/notifications/{nid}", json={}, headers=auth_headers(admin)).status_code == 404
        assert client.delete(f"{API}/notifications/{nid}", headers=auth_headers(admin)).status_code == 404

    def test_delete(self, client, admin, member, project, auth_headers):
        _submit_and_decide(client, admin, member, project, auth_headers)
        nid = Notification.query.filter_by(user_id=member.id).one().id

        res = client.delete(f"{API}/notifications/{nid}", headers=auth_headers(member))
        assert res.get_json() == {"deleted": True, "id": nid}
        assert db.session.get(Notification, nid) is None

    def test_limit_and_offset(self, client, admin, member, project, auth_headers):
        for _ in range(3):
            _submit_and_decide(client, admin, member, project, auth_headers)
        body = client.get(f"{API}/notifications?limit=2&offset=2", headers=auth_headers(member)).get_json()
        assert body["total"] == 3
        assert len(body["items"]) == 1


class TestNotificationService:
    def test_broadcast_rejects_unknown_type(self, org, admin):
        with pytest.raises(ValueError):
            NotificationService.broadcast(
                organization_id=org.id, recipient_ids=[admin.id], message="hi", type="shout",
            )

    def test_notify_user_is_best_effort(self, org, admin, monkeypatch):
        def _boom(**kwargs):
            raise RuntimeError("db gone")

        monkeypatch.setattr(NotificationService, "broadcast", staticmethod(_boom))
        assert NotificationService.notify_user(
            organization_id=org.id, user_id=admin.id, message="hi", type="info", item_type="task", item_id=1,
        ) == []
        assert NotificationService.notify_admins(
            organization_id=org.id, message="hi", item_type="task", item_id=1,
        ) == []
