from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest

from event_checkin.core.exceptions import InvalidToken, MissingField, NotFound, Unauthorized
from event_checkin.services.checkin import CheckinCoordinator, CheckinStatus
from event_checkin.services.registration import RegistrationService, build_input
from event_checkin.services.row_store import InMemoryRowStore
from event_checkin.services.token_codec import TokenCodec

from conftest import STAFF_PASSWORD, TOKEN_SECRET, FrozenClock

SHEET = "Registrations"


@pytest.fixture()
def clock():
    return FrozenClock(datetime(2026, 10, 24, 17, 45, 0))


@pytest.fixture()
def registrations(clock):
    service = RegistrationService(InMemoryRowStore(), SHEET, now=clock)
    service.upsert(
        build_input(
            email="family@example.com",
            names=[("Grace", "Kim"), ("Joel", "Kim")],
            mobile="0400000000",
            tshirts=[("M", "1")],
            total_fee="25",
        )
    )
    return service


@pytest.fixture()
def codec():
    return TokenCodec(TOKEN_SECRET)


@pytest.fixture()
def coordinator(registrations, codec, clock):
    return CheckinCoordinator(registrations, codec, STAFF_PASSWORD, now=clock)


def test_first_redeem_then_already_redeemed(coordinator, codec, registrations, clock):
    token = codec.encode("family@example.com")

    first = coordinator.redeem(token, "Alice", STAFF_PASSWORD)
    assert first.status is CheckinStatus.REDEEMED
    assert first.name == "Grace Kim"
    assert first.staff_name == "Alice"
    assert first.timestamp == "2026-10-24 17:45:00"
    assert "checked in successfully" in first.message

    clock.current += timedelta(minutes=5)
    second = coordinator.redeem(codec.encode("family@example.com"), "Bob", STAFF_PASSWORD)
    assert second.status is CheckinStatus.ALREADY_REDEEMED
    assert second.staff_name == "Alice"
    assert second.timestamp == "2026-10-24 17:45:00"
    assert "already checked in by Alice" in second.message

    _, record = registrations.find("family@example.com")
    assert record.staff_checkin_name == "Alice"
    assert record.checkin_timestamp == "2026-10-24 17:45:00"


def test_checkin_does_not_touch_registrant_fields(coordinator, codec, registrations):
    _, before = registrations.find("family@example.com")
    coordinator.redeem(codec.encode("family@example.com"), "Alice", STAFF_PASSWORD)
    _, after = registrations.find("family@example.com")
    assert after.with_changes(staff_checkin_name="", checkin_timestamp="") == before


def test_later_update_keeps_checkin(coordinator, codec, registrations):
    coordinator.redeem(codec.encode("family@example.com"), "Alice", STAFF_PASSWORD)
    result = registrations.upsert(build_input(email="family@example.com", mobile="0499999999"))
    assert result.record.staff_checkin_name == "Alice"
    assert result.record.checked_in


def test_wrong_password(coordinator, codec):
    with pytest.raises(Unauthorized):
        coordinator.redeem(codec.encode("family@example.com"), "Alice", "nope")


def test_password_checked_before_token(coordinator):
    with pytest.raises(Unauthorized):
        coordinator.redeem("garbage", "Alice", "nope")


def test_missing_staff_name_or_token(coordinator, codec):
    with pytest.raises(MissingField):
        coordinator.redeem(codec.encode("family@example.com"), "  ", STAFF_PASSWORD)
    with pytest.raises(MissingField):
        coordinator.redeem("", "Alice", STAFF_PASSWORD)


def test_undecodable_token(coordinator):
    with pytest.raises(InvalidToken):
        coordinator.redeem("not-a-token", "Alice", STAFF_PASSWORD)


def test_unknown_email(coordinator, codec):
    with pytest.raises(NotFound):
        coordinator.redeem(codec.encode("stranger@example.com"), "Alice", STAFF_PASSWORD)


def test_concurrent_redeems_yield_one_redeemed(coordinator, codec):
    tokens = [codec.encode("family@example.com") for _ in range(24)]

    with ThreadPoolExecutor(max_workers=12) as pool:
        outcomes = list(
            pool.map(lambda t: coordinator.redeem(t[1], f"staff-{t[0]}", STAFF_PASSWORD), enumerate(tokens))
        )

    redeemed = [o for o in outcomes if o.status is CheckinStatus.REDEEMED]
    assert len(redeemed) == 1
    winner = redeemed[0]
    for outcome in outcomes:
        if outcome is not winner:
            assert outcome.status is CheckinStatus.ALREADY_REDEEMED
            assert outcome.staff_name == winner.staff_name
            assert outcome.timestamp == winner.timestamp
