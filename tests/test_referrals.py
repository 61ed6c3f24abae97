"""Referral codes, click / signup / conversion tracking and stats"""
import pytest

from modules.loyalty.models import MemberPoints, PointsTransactionType, PointsTransaction
from modules.members.schemas import MemberCreate
from modules.members.service import MemberService
from modules.referrals.models import ReferralStatus
from modules.referrals.schemas import ReferralConfigUpdate
from modules.referrals.service import ReferralService
from shared.exceptions import BadRequestException, InvalidStateException, NotFoundException


@pytest.fixture
def referrer(make_member):
    return make_member(first_name="Omar", email="omar@example.com")


@pytest.fixture
def code(db, tenant, referrer):
    return ReferralService(db).get_or_create_code(tenant.id, referrer.id)


class TestCodes:
    def test_code_uses_club_prefix(self, code, referrer):
        assert code.code.startswith("REF")
        assert len(code.code) == 11
        assert code.member_id == referrer.id

    def test_code_is_created_once(self, db, tenant, referrer, code):
        assert ReferralService(db).get_or_create_code(tenant.id, referrer.id).id == code.id

    def test_unknown_member(self, db, tenant):
        with pytest.raises(NotFoundException):
            ReferralService(db).get_or_create_code(tenant.id, "missing-member")

    def test_validate_code(self, db, tenant, referrer, code):
        service = ReferralService(db)
        assert service.validate_code(tenant.id, code.code.lower()) is True
        assert service.validate_code(tenant.id, "REFNOTREAL") is False

        service.set_code_active(tenant.id, referrer.id, False)
        assert service.validate_code(tenant.id, code.code) is False

    def test_disabled_programme(self, db, tenant, code):
        service = ReferralService(db)
        service.update_config(tenant.id, ReferralConfigUpdate(is_enabled=False))
        assert service.validate_code(tenant.id, code.code) is False


class TestTracking:
    def test_click_then_signup(self, db, tenant, code, make_member):
        service = ReferralService(db)
        referral = service.track_click(tenant.id, code.code)
        assert referral.status == ReferralStatus.CLICKED

        referee = make_member()
        referral = service.mark_signed_up(tenant.id, referral.id, referee.id)
        assert referral.status == ReferralStatus.SIGNED_UP
        assert referral.referee_member_id == referee.id
        assert referral.signed_up_at is not None

    def test_click_on_bad_code(self, db, tenant):
        assert ReferralService(db).track_click(tenant.id, "REFNOTREAL") is None

    def test_member_cannot_refer_themselves(self, db, tenant, code, referrer):
        service = ReferralService(db)
        referral = service.track_click(tenant.id, code.code)
        with pytest.raises(BadRequestException):
            service.mark_signed_up(tenant.id, referral.id, referrer.id)

    def test_member_is_referred_only_once(self, db, tenant, code, make_member):
        service = ReferralService(db)
        referee = make_member()
        service.record_signup(tenant.id, code.code, referee.id)

        second = service.track_click(tenant.id, code.code)
        with pytest.raises(InvalidStateException):
            service.mark_signed_up(tenant.id, second.id, referee.id)

    def test_signup_on_unknown_referral(self, db, tenant, make_member):
        with pytest.raises(NotFoundException):
            ReferralService(db).mark_signed_up(tenant.id, "missing-referral", make_member().id)

    def test_member_registration_with_code(self, db, tenant, code):
        member = MemberService(db).create_member(tenant.id, MemberCreate(
            first_name="Lina", last_name="Haddad", email="Lina@Example.com", referral_code=code.code
        ))

        referrals = ReferralService(db).list_referrals(tenant.id, referrer_member_id=code.member_id)
        assert referrals["total"] == 1
        assert referrals["items"][0].referee_member_id == member.id

    def test_member_registration_with_bad_code_still_succeeds(self, db, tenant):
        member = MemberService(db).create_member(tenant.id, MemberCreate(
            first_name="Lina", last_name="Haddad", email="lina@example.com", referral_code="REFNOTREAL"
        ))
        assert member.email == "lina@example.com"


class TestConversion:
    def test_convert_rewards_referrer(self, db, tenant, code, referrer, make_member):
        service = ReferralService(db)
        referee = make_member()
        service.record_signup(tenant.id, code.code, referee.id)

        referral = service.convert_referral(tenant.id, referee.id)

        assert referral.status == ReferralStatus.CONVERTED
        assert referral.reward_points == 100
        assert referral.converted_at is not None
        db.refresh(code)
        assert code.conversion_count == 1

        balance = db.query(MemberPoints).filter(MemberPoints.member_id == referrer.id).one()
        assert balance.current_balance == 100
        tx = db.query(PointsTransaction).filter(PointsTransaction.member_id == referrer.id).one()
        assert tx.transaction_type == PointsTransactionType.BONUS

    def test_nothing_to_convert(self, db, tenant, member):
        assert ReferralService(db).convert_referral(tenant.id, member.id) is None

    def test_converted_only_once(self, db, tenant, code, make_member):
        service = ReferralService(db)
        referee = make_member()
        service.record_signup(tenant.id, code.code, referee.id)
        service.convert_referral(tenant.id, referee.id)

        assert service.convert_referral(tenant.id, referee.id) is None

    def test_referral_limit_counts_conversions(self, db, tenant, code, make_member):
        service = ReferralService(db)
        service.update_config(tenant.id, ReferralConfigUpdate(max_referrals_per_member=1))

        first = make_member()
        service.record_signup(tenant.id, code.code, first.id)
        assert service.validate_code(tenant.id, code.code) is True

        service.convert_referral(tenant.id, first.id)
        assert service.validate_code(tenant.id, code.code) is False
        assert service.record_signup(tenant.id, code.code, make_member().id) is None


class TestStats:
    def test_member_stats(self, db, tenant, code, referrer, make_member):
        service = ReferralService(db)
        service.track_click(tenant.id, code.code)
        converted = make_member()
        service.record_signup(tenant.id, code.code, converted.id)
        service.record_signup(tenant.id, code.code, make_member().id)
        service.track_click(tenant.id, code.code)
        service.convert_referral(tenant.id, converted.id)

        stats = service.get_member_stats(tenant.id, referrer.id)

        assert stats["code"] == code.code
        assert stats["click_count"] == 4
        assert stats["total_referrals"] == 4
        assert stats["conversions"] == 1
        assert stats["conversion_rate"] == 0.25

    def test_member_without_code(self, db, tenant, member):
        stats = ReferralService(db).get_member_stats(tenant.id, member.id)
        assert stats["code"] is None
        assert stats["conversion_rate"] == 0.0
