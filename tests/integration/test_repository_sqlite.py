"""AvailabilityRepository against an in-memory SQLite database"""
from datetime import date, time

import pytz

from bookwise.models import CalendarIntegration, ResourcePoolMember
from bookwise.schemas.availability import AssignmentDecision, AssignmentReason
from bookwise.services.data.availability_repository import AvailabilityRepository
from tests.fakes import at
from tests.integration.factories import (
    make_blackout,
    make_booking,
    make_link,
    make_pool,
    make_provider,
)


class TestPerMemberFetches:

    def test_rules_are_converted_to_value_types(self, run, db):
        alice = make_provider(db, "Alice", weekdays=[0, 2])
        repository = AvailabilityRepository(db)

        rules = run(repository.fetch_availability_rules(alice.id))

        assert [r.day_of_week for r in rules] == [0, 2]
        assert rules[0].start_time == time(9)
        assert rules[0].end_time == time(17)

    def test_bookings_skip_cancelled_and_excluded(self, run, db):
        alice = make_provider(db, "Alice")
        make_booking(db, alice, at(2025, 3, 10, 9), at(2025, 3, 10, 10))
        make_booking(db, alice, at(2025, 3, 10, 11), at(2025, 3, 10, 12), status="cancelled")
        moved = make_booking(db, alice, at(2025, 3, 10, 13), at(2025, 3, 10, 14))
        make_booking(db, alice, at(2025, 3, 11, 9), at(2025, 3, 11, 10))
        repository = AvailabilityRepository(db)

        bookings = run(repository.fetch_bookings(
            alice.id, at(2025, 3, 10), at(2025, 3, 10, 23, 59), exclude_booking_id=moved.id
        ))

        assert len(bookings) == 1
        assert bookings[0].start == at(2025, 3, 10, 9)
        assert bookings[0].start.tzinfo is not None

    def test_booking_range_is_compared_in_utc(self, run, db):
        alice = make_provider(db, "Alice")
        make_booking(db, alice, at(2025, 3, 11, 2), at(2025, 3, 11, 3))
        repository = AvailabilityRepository(db)
        tz = pytz.timezone("America/Los_Angeles")

        # 19:00-20:00 Pacific on the 10th is 02:00-03:00 UTC on the 11th
        bookings = run(repository.fetch_bookings(
            alice.id, tz.localize(at(2025, 3, 10).replace(tzinfo=None)),
            tz.localize(at(2025, 3, 10, 23, 59).replace(tzinfo=None))
        ))

        assert len(bookings) == 1

    def test_blackouts_touching_the_range(self, run, db):
        alice = make_provider(db, "Alice")
        make_blackout(db, alice, date(2025, 3, 1), date(2025, 3, 5))
        make_blackout(db, alice, date(2025, 3, 9), date(2025, 3, 11))
        make_blackout(db, alice, date(2025, 4, 1))
        repository = AvailabilityRepository(db)

        day = run(repository.fetch_blackouts(alice.id, start_date=date(2025, 3, 10), end_date=date(2025, 3, 10)))
        upcoming = run(repository.fetch_blackouts(alice.id, start_date=date(2025, 3, 6)))
        everything = run(repository.fetch_blackouts(alice.id))

        assert [(b.start_date, b.end_date) for b in day] == [(date(2025, 3, 9), date(2025, 3, 11))]
        assert len(upcoming) == 2
        assert len(everything) == 3

    def test_only_active_calendar_integration_is_returned(self, run, db):
        alice = make_provider(db, "Alice")
        db.add(CalendarIntegration(provider_id=alice.id, provider="google", is_active=False))
        db.commit()
        repository = AvailabilityRepository(db)

        assert run(repository.fetch_calendar_integration(alice.id)) is None

        db.add(CalendarIntegration(provider_id=alice.id, provider="outlook", is_active=True))
        db.commit()

        assert run(repository.fetch_calendar_integration(alice.id)).provider == "outlook"


class TestMembership:

    def test_team_members_carry_required_flag(self, run, db):
        alice = make_provider(db, "Alice")
        bob = make_provider(db, "Bob")
        link = make_link(db, alice, [(alice, True), (bob, False)], min_required_members=2)
        repository = AvailabilityRepository(db)

        members = run(repository.fetch_team_members(link.id))

        assert {(m.provider_id, m.is_required) for m in members} == {(alice.id, True), (bob.id, False)}
        assert repository.get_booking_link(link.id).is_flexible

    def test_pool_members_active_only_by_priority(self, run, db):
        alice = make_provider(db, "Alice")
        bob = make_provider(db, "Bob")
        carol = make_provider(db, "Carol")
        pool = make_pool(db, alice, [(alice, 1), (bob, 5), (carol, 9)])
        db.query(ResourcePoolMember).filter(ResourcePoolMember.provider_id == carol.id).update({"is_active": False})
        db.commit()
        repository = AvailabilityRepository(db)

        members = run(repository.fetch_pool_members(pool.id))

        assert [m.provider_id for m in members] == [bob.id, alice.id]


class TestAssignments:

    def test_persist_and_read_back(self, run, db):
        alice = make_provider(db, "Alice")
        bob = make_provider(db, "Bob")
        booking = make_booking(db, alice, at(2025, 3, 12, 10), at(2025, 3, 12, 11))
        repository = AvailabilityRepository(db)

        run(repository.persist_assignments(booking.id, [
            AssignmentDecision(provider_id=alice.id, reason=AssignmentReason.REQUIRED),
            AssignmentDecision(provider_id=bob.id, reason=AssignmentReason.LOAD_BALANCED),
        ]))
        stored = run(repository.fetch_booking_assignments(booking.id))

        assert {(s.provider_id, s.reason) for s in stored} == {
            (alice.id, "required"),
            (bob.id, "load_balanced"),
        }
        assert all(s.assigned_at.tzinfo is not None for s in stored)

    def test_caller_owned_transaction_is_left_open(self, run, db):
        alice = make_provider(db, "Alice")
        booking = make_booking(db, alice, at(2025, 3, 12, 10), at(2025, 3, 12, 11))
        repository = AvailabilityRepository(db, autocommit=False)

        run(repository.persist_assignments(booking.id, [
            AssignmentDecision(provider_id=alice.id, reason=AssignmentReason.MANUAL),
        ]))
        assert len(run(repository.fetch_booking_assignments(booking.id))) == 1

        db.rollback()

        assert run(repository.fetch_booking_assignments(booking.id)) == []

    def test_recent_assignments_filter_on_booking_start(self, run, db):
        alice = make_provider(db, "Alice")
        last_week = make_booking(db, alice, at(2025, 3, 5, 10), at(2025, 3, 5, 11))
        this_week = make_booking(db, alice, at(2025, 3, 11, 10), at(2025, 3, 11, 11))
        repository = AvailabilityRepository(db)
        for booking in (last_week, this_week):
            run(repository.persist_assignments(booking.id, [
                AssignmentDecision(provider_id=alice.id, reason=AssignmentReason.ROUND_ROBIN)
            ]))

        recent = run(repository.fetch_recent_assignments([alice.id], at(2025, 3, 10)))

        assert len(recent) == 1
        assert recent[0].booking_start == at(2025, 3, 11, 10)
        assert run(repository.fetch_recent_assignments([], at(2025, 3, 10))) == []
