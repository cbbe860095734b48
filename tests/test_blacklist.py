from conftest import FakeClock

from services.conversation.blacklist import Blacklist


def test_entry_expires_and_calls_hook_once():
    clock = FakeClock()
    evicted = []
    blacklist = Blacklist(clock=clock, on_evict=evicted.append)
    blacklist.add("u1", 60)

    clock.now += 59
    assert blacklist.is_blacklisted("u1")
    clock.now += 1
    assert not blacklist.is_blacklisted("u1")
    assert not blacklist.is_blacklisted("u1")
    assert evicted == ["u1"]
    assert not blacklist.contains("u1")


def test_add_replaces_previous_expiry():
    clock = FakeClock()
    blacklist = Blacklist(clock=clock)
    blacklist.add("u1", 10)
    expiry = blacklist.add("u1", 100)
    assert expiry == clock.now + 100
    clock.now += 50
    assert blacklist.is_blacklisted("u1")


def test_manual_remove_skips_hook():
    evicted = []
    blacklist = Blacklist(clock=FakeClock(), on_evict=evicted.append)
    blacklist.add("u1", 10)
    assert blacklist.remove("u1")
    assert not blacklist.remove("u1")
    assert not blacklist.is_blacklisted("u1")
    assert evicted == []


def test_status_reports_time_left():
    clock = FakeClock(now=500.0)
    blacklist = Blacklist(clock=clock)
    blacklist.add("u1", 30)
    clock.now += 10
    assert blacklist.status() == [{"user_id": "u1", "expires_at": 530.0, "seconds_left": 20.0}]


def test_purge_expired_evicts_only_past_entries():
    clock = FakeClock()
    evicted = []
    blacklist = Blacklist(clock=clock, on_evict=evicted.append)
    blacklist.add("short", 60)
    blacklist.add("long", 600)

    clock.now += 120
    assert blacklist.purge_expired() == ["short"]
    assert evicted == ["short"]
    assert not blacklist.contains("short")
    assert blacklist.contains("long")
    assert blacklist.purge_expired() == []
