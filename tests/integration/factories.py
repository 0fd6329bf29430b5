"""Row builders for the SQLite integration tests"""
from datetime import time

from bookwise.models import (
    AvailabilityRule,
    BlackoutDate,
    Booking,
    BookingLink,
    BookingLinkMember,
    Provider,
    ResourcePool,
    ResourcePoolMember,
    Service,
)


def make_provider(db, name, timezone="UTC", weekdays=range(5), start=time(9), end=time(17)):
    provider = Provider(name=name, email=f"{name.lower()}@example.com", timezone=timezone)
    db.add(provider)
    db.flush()
    for day in weekdays:
        db.add(AvailabilityRule(provider_id=provider.id, day_of_week=day, start_time=start, end_time=end))
    db.commit()
    return provider


def make_service(db, provider, duration_minutes=30, buffer_minutes=0, booking_mode="instant"):
    service = Service(
        provider_id=provider.id,
        name="Consultation",
        duration_minutes=duration_minutes,
        buffer_minutes=buffer_minutes,
        booking_mode=booking_mode,
    )
    db.add(service)
    db.commit()
    return service


def make_booking(db, provider, start, end, status="confirmed", client_name="Existing Client"):
    booking = Booking(
        provider_id=provider.id,
        client_name=client_name,
        client_email="client@example.com",
        start_time=start,
        end_time=end,
        status=status,
    )
    db.add(booking)
    db.commit()
    return booking


def make_blackout(db, provider, start_date, end_date=None, reason="Vacation"):
    blackout = BlackoutDate(
        provider_id=provider.id,
        start_date=start_date,
        end_date=end_date or start_date,
        reason=reason,
    )
    db.add(blackout)
    db.commit()
    return blackout


def make_link(db, owner, members, min_required_members=None, assignment_mode="round_robin", slug="team"):
    """``members`` is a list of (provider, is_required) pairs"""
    link = BookingLink(
        owner_id=owner.id,
        name="Team Meeting",
        slug=slug,
        min_required_members=min_required_members,
        assignment_mode=assignment_mode,
    )
    db.add(link)
    db.flush()
    for provider, is_required in members:
        db.add(BookingLinkMember(booking_link_id=link.id, provider_id=provider.id, is_required=is_required))
    db.commit()
    return link


def make_pool(db, owner, members, pool_type="round_robin"):
    """``members`` is a list of (provider, priority) pairs"""
    pool = ResourcePool(owner_id=owner.id, name="Front desk", pool_type=pool_type)
    db.add(pool)
    db.flush()
    for provider, priority in members:
        db.add(ResourcePoolMember(pool_id=pool.id, provider_id=provider.id, priority=priority))
    db.commit()
    return pool
