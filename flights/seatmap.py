"""Seat map layout and the class change state machine for one flight leg.

:class:`SeatSelector` holds no database state. The booking draft services
load the leg's held class and current holds into it, apply one user action,
then persist whatever the selector reports as added or released.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from itertools import groupby

from core.exceptions import InvalidRequest

from .models import FareClass, compare_fare_classes

SEAT_NUMBER_PATTERN = re.compile(r'^(?P<row>\d+)(?P<column>[A-Z]+)$')


class SelectorState(str, Enum):
    IDLE = 'idle'
    PENDING_UPGRADE = 'pending_upgrade'
    PENDING_DOWNGRADE = 'pending_downgrade'
    COMMITTED = 'committed'


class ClickOutcome(str, Enum):
    IGNORED = 'ignored'
    REMOVED = 'removed'
    SELECTED = 'selected'
    UPGRADE_PENDING = 'upgrade_pending'
    DOWNGRADE_PENDING = 'downgrade_pending'


@dataclass(frozen=True)
class SeatView:
    seat_id: int
    seat_number: str
    fare_class: int
    is_occupied: bool = False
    is_blocked: bool = False
    is_held_elsewhere: bool = False

    @property
    def row(self) -> int:
        match = SEAT_NUMBER_PATTERN.match(self.seat_number.upper())
        return int(match.group('row')) if match else 0

    @property
    def column(self) -> str:
        match = SEAT_NUMBER_PATTERN.match(self.seat_number.upper())
        return match.group('column') if match else self.seat_number

    @property
    def selectable(self) -> bool:
        return not (self.is_occupied or self.is_blocked or self.is_held_elsewhere)


@dataclass
class SeatSelector:
    held_class: int
    capacity: int
    selected: list[SeatView] = field(default_factory=list)
    state: SelectorState = SelectorState.IDLE
    candidate: SeatView | None = None
    leg_label: str = 'outbound'

    @property
    def is_pending(self) -> bool:
        return self.state in (SelectorState.PENDING_UPGRADE, SelectorState.PENDING_DOWNGRADE)

    def is_selected(self, seat: SeatView) -> bool:
        return any(chosen.seat_id == seat.seat_id for chosen in self.selected)

    def _check_capacity(self, keeping: list[SeatView]) -> None:
        if len(keeping) >= self.capacity:
            raise InvalidRequest(
                f"You have already selected {self.capacity} seat(s) for the {self.leg_label} flight. "
                "Remove a seat before choosing another.",
                field='seat',
                leg=self.leg_label,
                required=self.capacity,
            )

    def click(self, seat: SeatView) -> ClickOutcome:
        if self.is_pending:
            raise InvalidRequest('Confirm or cancel the pending class change first.', field='seat')

        if self.is_selected(seat):
            self.selected = [chosen for chosen in self.selected if chosen.seat_id != seat.seat_id]
            self.state = SelectorState.IDLE
            return ClickOutcome.REMOVED

        if not seat.selectable:
            return ClickOutcome.IGNORED

        ordering = compare_fare_classes(seat.fare_class, self.held_class)
        if ordering == 0:
            self._check_capacity(self.selected)
            self.selected.append(seat)
            self.state = SelectorState.COMMITTED
            return ClickOutcome.SELECTED

        self.candidate = seat
        if ordering > 0:
            self.state = SelectorState.PENDING_UPGRADE
            return ClickOutcome.UPGRADE_PENDING
        self.state = SelectorState.PENDING_DOWNGRADE
        return ClickOutcome.DOWNGRADE_PENDING

    def confirm(self) -> list[SeatView]:
        """Accept the pending class change; returns the seats released because their class no longer matches."""
        if not self.is_pending or self.candidate is None:
            raise InvalidRequest('There is no class change waiting for confirmation.', field='seat')

        candidate = self.candidate
        keeping = [chosen for chosen in self.selected if chosen.fare_class == candidate.fare_class]
        self._check_capacity(keeping)

        released = [chosen for chosen in self.selected if chosen.fare_class != candidate.fare_class]
        self.held_class = candidate.fare_class
        self.selected = keeping + [candidate]
        self.candidate = None
        self.state = SelectorState.IDLE
        return released

    def cancel(self) -> None:
        self.candidate = None
        self.state = SelectorState.IDLE


@dataclass(frozen=True)
class SeatRow:
    number: int
    seats: list[dict]


def build_seat_rows(seats: list[SeatView], selected_ids: set[int]) -> list[SeatRow]:
    """Group seats by row number, each row ordered by column letter."""
    ordered = sorted(seats, key=lambda seat: (seat.row, seat.column))
    rows: list[SeatRow] = []
    for row_number, row_seats in groupby(ordered, key=lambda seat: seat.row):
        rows.append(
            SeatRow(
                number=row_number,
                seats=[
                    {
                        'id': seat.seat_id,
                        'seat_number': seat.seat_number,
                        'column': seat.column,
                        'fare_class': seat.fare_class,
                        'fare_class_label': FareClass(seat.fare_class).label,
                        'is_selected': seat.seat_id in selected_ids,
                        'is_occupied': seat.is_occupied,
                        'is_blocked': seat.is_blocked,
                        'is_held': seat.is_held_elsewhere,
                    }
                    for seat in row_seats
                ],
            )
        )
    return rows
