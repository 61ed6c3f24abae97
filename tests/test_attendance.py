"""Check-in / check-out flow and the auto-checkout job"""
from datetime import date, timedelta

import pytest

from modules.attendance.models import AttendanceRecord, AttendanceStatus, CheckInMethod
from modules.attendance.service import AttendanceService
from modules.loyalty.models import MemberPoints
from modules.members.models import MemberStatus
from modules.members.service import create_member_qr_token
from modules.memberships.models import SubscriptionStatus
from modules.tenants.models import LocationStatus
from shared.exceptions import NotFoundException, InvalidStateException, ForbiddenException
from shared.utils import utcnow


@pytest.fixture
def subscribed_member(member, plan, make_subscription):
    make_subscription(member, plan)
    return member


class TestCheckIn:
    def test_check_in_creates_open_record(self, db, tenant, location, subscribed_member):
        record = AttendanceService(db).check_in(tenant.id, subscribed_member.id, location.id)

        assert record.status == AttendanceStatus.CHECKED_IN
        assert record.check_in_method == CheckInMethod.MANUAL
        assert record.check_out_time is None
        assert record.subscription_id is not None

    def test_check_in_awards_visit_points(self, db, tenant, location, subscribed_member):
        AttendanceService(db).check_in(tenant.id, subscribed_member.id, location.id)

        balance = db.query(MemberPoints).filter(MemberPoints.member_id == subscribed_member.id).first()
        assert balance is not None
        assert balance.current_balance == 10

    def test_unknown_member(self, db, tenant, location):
        with pytest.raises(NotFoundException):
            AttendanceService(db).check_in(tenant.id, "missing-member", location.id)

    def test_inactive_member_is_rejected_before_location(self, db, tenant, location, make_member):
        suspended = make_member(status=MemberStatus.SUSPENDED)
        location.status = LocationStatus.TEMPORARILY_CLOSED
        db.commit()

        with pytest.raises(InvalidStateException) as exc:
            AttendanceService(db).check_in(tenant.id, suspended.id, location.id)
        assert exc.value.detail == "Member is not active"

    def test_unknown_location(self, db, tenant, subscribed_member):
        with pytest.raises(NotFoundException):
            AttendanceService(db).check_in(tenant.id, subscribed_member.id, "missing-location")

    def test_closed_location(self, db, tenant, location, subscribed_member):
        location.status = LocationStatus.TEMPORARILY_CLOSED
        db.commit()

        with pytest.raises(InvalidStateException) as exc:
            AttendanceService(db).check_in(tenant.id, subscribed_member.id, location.id)
        assert exc.value.detail == "Location is not open"

    def test_location_of_another_club(self, db, tenant, other_tenant, subscribed_member):
        from modules.tenants.models import Location
        foreign = Location(tenant_id=other_tenant.id, name="Elsewhere", status=LocationStatus.ACTIVE)
        db.add(foreign)
        db.commit()

        with pytest.raises(NotFoundException):
            AttendanceService(db).check_in(tenant.id, subscribed_member.id, foreign.id)

    def test_member_without_subscription(self, db, tenant, location, member):
        with pytest.raises(InvalidStateException) as exc:
            AttendanceService(db).check_in(tenant.id, member.id, location.id)
        assert exc.value.detail == "Member has no active subscription"

    def test_subscription_past_end_date_does_not_grant_access(self, db, tenant, location, member, plan,
                                                              make_subscription):
        make_subscription(member, plan, start_date=date.today() - timedelta(days=40),
                          end_date=date.today() - timedelta(days=1))

        with pytest.raises(InvalidStateException) as exc:
            AttendanceService(db).check_in(tenant.id, member.id, location.id)
        assert exc.value.detail == "Member has no active subscription"

    def test_frozen_subscription_does_not_grant_access(self, db, tenant, location, member, plan,
                                                       make_subscription):
        make_subscription(member, plan, status=SubscriptionStatus.FROZEN)

        with pytest.raises(InvalidStateException):
            AttendanceService(db).check_in(tenant.id, member.id, location.id)

    def test_double_check_in(self, db, tenant, location, subscribed_member):
        service = AttendanceService(db)
        service.check_in(tenant.id, subscribed_member.id, location.id)

        with pytest.raises(InvalidStateException) as exc:
            service.check_in(tenant.id, subscribed_member.id, location.id)
        assert exc.value.detail == "Member is already checked in"

    def test_class_allowance_is_consumed(self, db, tenant, location, member, make_plan, make_subscription):
        limited = make_plan(name="10 visits", class_limit=1)
        subscription = make_subscription(member, limited)
        service = AttendanceService(db)

        service.check_in(tenant.id, member.id, location.id)
        db.refresh(subscription)
        assert subscription.classes_remaining == 0

        service.check_out(tenant.id, member.id)
        with pytest.raises(InvalidStateException) as exc:
            service.check_in(tenant.id, member.id, location.id)
        assert exc.value.detail == "No classes remaining on subscription"

    def test_unlimited_plan_is_not_decremented(self, db, tenant, location, member, plan, make_subscription):
        subscription = make_subscription(member, plan)

        AttendanceService(db).check_in(tenant.id, member.id, location.id)
        db.refresh(subscription)
        assert subscription.classes_remaining is None


class TestKioskCheckIn:
    def test_qr_token_checks_member_in(self, db, tenant, location, subscribed_member):
        token = create_member_qr_token(subscribed_member)

        record = AttendanceService(db).kiosk_check_in(tenant.id, token, location.id)
        assert record.member_id == subscribed_member.id
        assert record.check_in_method == CheckInMethod.QR_CODE

    def test_qr_token_from_another_club(self, db, other_tenant, location, subscribed_member):
        token = create_member_qr_token(subscribed_member)

        with pytest.raises(ForbiddenException):
            AttendanceService(db).kiosk_check_in(other_tenant.id, token, location.id)


class TestCheckOut:
    def test_check_out_closes_record(self, db, tenant, location, subscribed_member):
        service = AttendanceService(db)
        service.check_in(tenant.id, subscribed_member.id, location.id)

        record = service.check_out(tenant.id, subscribed_member.id)
        assert record.status == AttendanceStatus.CHECKED_OUT
        assert record.check_out_time is not None
        assert record.duration_minutes == 0

    def test_check_out_without_open_visit(self, db, tenant, subscribed_member):
        with pytest.raises(NotFoundException):
            AttendanceService(db).check_out(tenant.id, subscribed_member.id)

    def test_record_cannot_be_checked_out_twice(self, db, tenant, location, subscribed_member):
        service = AttendanceService(db)
        record = service.check_in(tenant.id, subscribed_member.id, location.id)
        service.check_out_record(tenant.id, record.id)

        with pytest.raises(InvalidStateException):
            service.check_out_record(tenant.id, record.id)


class TestQueries:
    def test_counts(self, db, tenant, location, subscribed_member):
        service = AttendanceService(db)
        service.check_in(tenant.id, subscribed_member.id, location.id)

        assert service.count_checked_in(tenant.id) == 1
        assert service.count_today(tenant.id) == 1
        assert service.count_member_visits(tenant.id, subscribed_member.id) == 1

        service.check_out(tenant.id, subscribed_member.id)
        assert service.count_checked_in(tenant.id) == 0
        assert service.count_today(tenant.id, location.id) == 1

    def test_history_range_is_half_open(self, db, tenant, location, subscribed_member):
        record = AttendanceService(db).check_in(tenant.id, subscribed_member.id, location.id)
        service = AttendanceService(db)

        included = service.get_history(tenant.id, record.check_in_time, record.check_in_time + timedelta(hours=1))
        excluded = service.get_history(tenant.id, record.check_in_time - timedelta(hours=1), record.check_in_time)
        assert included["total"] == 1
        assert excluded["total"] == 0


class TestAutoCheckout:
    def _open_record(self, db, tenant, location, member, checked_in_at):
        record = AttendanceRecord(
            tenant_id=tenant.id,
            member_id=member.id,
            location_id=location.id,
            check_in_time=checked_in_at,
            status=AttendanceStatus.CHECKED_IN,
        )
        db.add(record)
        db.commit()
        return record

    def test_only_stale_visits_are_closed(self, db, tenant, location, make_member):
        now = utcnow()
        stale = self._open_record(db, tenant, location, make_member(), now - timedelta(hours=5))
        fresh = self._open_record(db, tenant, location, make_member(), now - timedelta(hours=1))

        closed = AttendanceService(db).auto_checkout(now)

        db.refresh(stale)
        db.refresh(fresh)
        assert closed == 1
        assert stale.status == AttendanceStatus.AUTO_CHECKED_OUT
        assert stale.check_out_time == now
        assert fresh.status == AttendanceStatus.CHECKED_IN

    def test_nothing_to_close(self, db):
        assert AttendanceService(db).auto_checkout() == 0
