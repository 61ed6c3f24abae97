"""In-app notifications for member portal users"""
import pytest

from modules.notifications.models import Notification, NotificationType
from modules.notifications.service import NotificationService
from shared.exceptions import NotFoundException


class TestNotifyMember:
    def test_member_without_portal_login_is_skipped(self, db, member):
        assert NotificationService(db).notify_points_change(member.id, 10, "EARNED") is None
        assert db.query(Notification).count() == 0

    def test_portal_user_is_notified(self, db, member, member_user):
        notification = NotificationService(db).notify_points_change(member.id, 10, "EARNED", "Visit")

        assert notification.target_user_id == member_user.id
        assert notification.type == NotificationType.POINTS_EARNED
        assert notification.message == "You earned 10 points: Visit"


class TestInbox:
    def test_read_flow(self, db, member, member_user):
        service = NotificationService(db)
        first = service.notify_points_change(member.id, 10, "EARNED")
        service.notify_points_change(member.id, 5, "REDEEMED")

        assert service.get_unread_count(member_user.id) == 2
        service.mark_as_read(first.id, member_user.id)
        assert service.get_unread_count(member_user.id) == 1
        assert service.get_notifications_for_user(member_user.id, unread_only=True)["total"] == 1

        assert service.mark_all_as_read(member_user.id) == 1
        assert service.get_unread_count(member_user.id) == 0

    def test_cannot_read_someone_elses(self, db, member, member_user, staff_user):
        notification = NotificationService(db).notify_points_change(member.id, 10, "EARNED")
        with pytest.raises(NotFoundException):
            NotificationService(db).mark_as_read(notification.id, staff_user.id)

    def test_inbox_endpoints(self, db, client, member, member_user, auth_headers):
        headers = auth_headers(member_user)
        notification = NotificationService(db).notify_points_change(member.id, 10, "EARNED")

        assert client.get("/api/notifications/unread-count", headers=headers).json() == {"unread": 1}
        inbox = client.get("/api/notifications", headers=headers).json()
        assert inbox["items"][0]["id"] == notification.id

        read = client.post(f"/api/notifications/{notification.id}/read", headers=headers)
        assert read.status_code == 200
        assert read.json()["is_read"] is True
