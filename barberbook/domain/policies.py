"""
Rules deciding who may edit, cancel or complete a reservation.
"""

from pendulum import DateTime

from .exceptions import ModificationNotAllowedError
from .models import Reservation

DEFAULT_EDIT_WINDOW_HOURS = 24


class ModificationPolicy:
    """
    Customer edits and cancellations are only allowed while the reservation
    is not completed and starts more than ``edit_window_hours`` from now.
    Admins may cancel or complete anything that is not completed yet.
    """

    def __init__(self, edit_window_hours: int = DEFAULT_EDIT_WINDOW_HOURS):
        self.edit_window_hours = edit_window_hours

    def hours_until_start(self, reservation: Reservation, now: DateTime) -> float:
        return (reservation.start - now).total_seconds() / 3600

    def can_customer_modify(self, reservation: Reservation, now: DateTime) -> bool:
        if reservation.is_completed:
            return False
        return self.hours_until_start(reservation, now) > self.edit_window_hours

    def ensure_customer_can_modify(self, reservation: Reservation, now: DateTime) -> None:
        """
        Raises:
            ModificationNotAllowedError: With a message telling completed and late cases apart
        """
        if reservation.is_completed:
            raise ModificationNotAllowedError(
                "Este serviço já foi concluído e não pode ser alterado."
            )
        if not self.can_customer_modify(reservation, now):
            raise ModificationNotAllowedError(
                f"O cancelamento ou reagendamento só pode ser feito até "
                f"{self.edit_window_hours} horas antes do horário agendado. "
                f"Entre em contato com o seu barbeiro."
            )

    def ensure_admin_can_cancel(self, reservation: Reservation) -> None:
        if reservation.is_completed:
            raise ModificationNotAllowedError(
                "Este serviço já foi concluído e não pode ser cancelado."
            )

    def ensure_admin_can_complete(self, reservation: Reservation) -> None:
        if reservation.is_completed:
            raise ModificationNotAllowedError("Este serviço já foi concluído.")
