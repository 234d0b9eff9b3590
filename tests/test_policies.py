"""
Tests for the reservation modification rules.
"""

import pendulum
import pytest

from barberbook.domain.exceptions import ModificationNotAllowedError
from barberbook.domain.models import Reservation, ReservationStatus
from barberbook.domain.policies import ModificationPolicy

TZ = "America/Sao_Paulo"
NOW = pendulum.datetime(2026, 10, 16, 12, 0, tz=TZ)


def _reservation(hours_ahead: float, status=ReservationStatus.SCHEDULED) -> Reservation:
    return Reservation(
        id=1,
        customer_id="c1",
        service_id=1,
        start=NOW.add(minutes=int(hours_ahead * 60)).in_timezone("UTC"),
        status=status,
    )


class TestCustomerWindow:
    """Customers may edit only more than 24 hours ahead."""

    def setup_method(self):
        self.policy = ModificationPolicy()

    def test_more_than_window_ahead_is_allowed(self):
        assert self.policy.can_customer_modify(_reservation(25), NOW)
        assert self.policy.can_customer_modify(_reservation(24.5), NOW)

    def test_exactly_window_ahead_is_refused(self):
        assert not self.policy.can_customer_modify(_reservation(24), NOW)

    def test_inside_window_is_refused(self):
        assert not self.policy.can_customer_modify(_reservation(3), NOW)
        assert not self.policy.can_customer_modify(_reservation(-2), NOW)

    def test_completed_is_refused_even_far_ahead(self):
        assert not self.policy.can_customer_modify(_reservation(100, ReservationStatus.COMPLETED), NOW)

    def test_hours_until_start(self):
        assert self.policy.hours_until_start(_reservation(30), NOW) == pytest.approx(30)

    def test_error_messages_tell_cases_apart(self):
        with pytest.raises(ModificationNotAllowedError, match="concluído"):
            self.policy.ensure_customer_can_modify(_reservation(100, ReservationStatus.COMPLETED), NOW)
        with pytest.raises(ModificationNotAllowedError, match="24 horas"):
            self.policy.ensure_customer_can_modify(_reservation(2), NOW)

    def test_ensure_passes_outside_window(self):
        self.policy.ensure_customer_can_modify(_reservation(48), NOW)

    def test_custom_window(self):
        policy = ModificationPolicy(edit_window_hours=2)
        assert policy.can_customer_modify(_reservation(3), NOW)
        assert not policy.can_customer_modify(_reservation(1), NOW)


class TestAdminRules:
    """Admins may act on anything that is not completed."""

    def setup_method(self):
        self.policy = ModificationPolicy()

    def test_admin_may_cancel_inside_window(self):
        self.policy.ensure_admin_can_cancel(_reservation(1))
        self.policy.ensure_admin_can_complete(_reservation(-1))

    def test_admin_may_not_touch_completed(self):
        completed = _reservation(1, ReservationStatus.COMPLETED)
        with pytest.raises(ModificationNotAllowedError):
            self.policy.ensure_admin_can_cancel(completed)
        with pytest.raises(ModificationNotAllowedError):
            self.policy.ensure_admin_can_complete(completed)
