import asyncio

import pytest

from conftest import GUILD_ID, ROLE_A, ROLE_B, ROLE_C, VOUCH_CHANNEL, mention_message
from vouchbot.vouch.errors import (
    MemberNotFound,
    NothingToRemove,
    SelfVouchError,
    VouchCapReached,
)
from vouchbot.vouch.mentions import MessageSnapshot
from vouchbot.vouch.store import VouchStore


def _seed(store, user_id, count):
    for _ in range(count):
        store.increment(user_id)


def test_self_vouch_rejected_without_side_effects(platform, service, store):
    platform.add_member(5)
    with pytest.raises(SelfVouchError):
        asyncio.run(service.vouch(GUILD_ID, 5, 5))
    assert store.get(5) == 0
    assert platform.calls == []


def test_vouch_for_non_member(platform, service, store):
    with pytest.raises(MemberNotFound) as info:
        asyncio.run(service.vouch(GUILD_ID, 1, 99))
    assert "<@99>" in str(info.value)
    assert store.get(99) == 0


def test_third_vouch_grants_first_tier(platform, service, store, config):
    platform.add_member(7)
    _seed(store, 7, 2)

    update = asyncio.run(service.vouch(GUILD_ID, 1, 7))

    assert update.count == 3
    assert update.added == ROLE_A
    assert platform.roles_of(7) == {ROLE_A}
    assert dict(VouchStore(config.data_file).load().items()) == {7: 3}


def test_promotion_removes_lower_tier_first(platform, service, store):
    platform.add_member(7, roles={ROLE_A})
    _seed(store, 7, 14)

    asyncio.run(service.vouch(GUILD_ID, 1, 7))

    assert platform.calls == [("remove", 7, ROLE_A), ("add", 7, ROLE_B)]
    assert platform.roles_of(7) == {ROLE_B}


def test_vouch_at_cap_raises(platform, service, store, config):
    platform.add_member(7, roles={ROLE_C})
    _seed(store, 7, config.vouch_cap)

    with pytest.raises(VouchCapReached):
        asyncio.run(service.vouch(GUILD_ID, 1, 7))
    assert store.get(7) == config.vouch_cap


def test_unvouch_below_threshold_strips_role(platform, service, store):
    platform.add_member(8, roles={ROLE_A, 555})
    _seed(store, 8, 3)

    update = asyncio.run(service.unvouch(GUILD_ID, 8))

    assert update.count == 2
    assert update.removed == [ROLE_A]
    assert update.added is None
    assert platform.roles_of(8) == {555}


def test_unvouch_at_zero(platform, service, store):
    platform.add_member(8)
    with pytest.raises(NothingToRemove):
        asyncio.run(service.unvouch(GUILD_ID, 8))
    assert platform.calls == []


def test_unvouch_of_departed_user_still_decrements(platform, service, store):
    _seed(store, 77, 4)
    update = asyncio.run(service.unvouch(GUILD_ID, 77))
    assert update.member_found is False
    assert store.get(77) == 3


def test_wipe_clears_counts_and_strips_all_tier_roles(platform, service, store, config):
    holders = {1: {ROLE_A}, 2: {ROLE_B}, 3: {ROLE_C}, 4: {ROLE_A, ROLE_B}, 5: {ROLE_C, 42}}
    for uid, roles in holders.items():
        platform.add_member(uid, roles=roles)
        _seed(store, uid, 10)
    platform.add_member(6, roles={42})

    report = asyncio.run(service.wipe(GUILD_ID))

    assert report.cleared_users == 5
    assert report.members_touched == 5
    assert report.failures == []
    assert len(store) == 0
    assert VouchStore(config.data_file).load().items() == []
    for uid in holders:
        assert not platform.roles_of(uid) & {ROLE_A, ROLE_B, ROLE_C}
    assert platform.roles_of(5) == {42}
    assert all(call[1] != 6 for call in platform.calls)


def test_reset_keeps_going_after_failed_removal(platform, service, store):
    platform.add_member(1, roles={ROLE_A})
    platform.add_member(2, roles={ROLE_B})
    platform.failing.add(("remove", 1, ROLE_A))

    report = asyncio.run(service.reset(GUILD_ID))

    assert len(report.failures) == 1
    failure = report.failures[0]
    assert (failure.user_id, failure.role_id, failure.action) == (1, ROLE_A, "remove")
    assert "403" in failure.error
    assert platform.roles_of(2) == set()


def test_failed_add_is_reported_not_raised(platform, service, store):
    platform.add_member(7, roles={ROLE_A})
    _seed(store, 7, 14)
    platform.failing.add(("add", 7, ROLE_B))

    update = asyncio.run(service.vouch(GUILD_ID, 1, 7))

    assert update.removed == [ROLE_A]
    assert update.added is None
    assert len(update.failures) == 1
    assert store.get(7) == 15


def test_credit_mentions_counts_each_member_once(platform, service, store):
    platform.add_member(2)
    platform.add_member(3)
    msg = MessageSnapshot(
        id=1, author_id=9, content="thanks <@2> <@2> <@3> <@404>", mention_ids=(2,)
    )

    updates = asyncio.run(service.credit_mentions(GUILD_ID, msg))

    assert sorted(u.user_id for u in updates) == [2, 3]
    assert store.get(2) == 1
    assert store.get(3) == 1
    assert store.get(404) == 0


def test_credit_mentions_ignores_command_messages(platform, service, store):
    platform.add_member(2)
    msg = MessageSnapshot(id=1, author_id=9, content="/vouch <@2>", mention_ids=(2,))
    assert asyncio.run(service.credit_mentions(GUILD_ID, msg)) == []
    assert store.get(2) == 0


def test_credit_mentions_promotes_on_threshold(platform, service, store):
    platform.add_member(2)
    _seed(store, 2, 2)
    updates = asyncio.run(service.credit_mentions(GUILD_ID, mention_message(5, 9, 2)))
    assert updates[0].added == ROLE_A
    assert platform.roles_of(2) == {ROLE_A}


def test_credit_mentions_at_cap_is_a_noop(platform, service, store, config):
    platform.add_member(2, roles={ROLE_C})
    _seed(store, 2, config.vouch_cap)
    assert asyncio.run(service.credit_mentions(GUILD_ID, mention_message(5, 9, 2))) == []
    assert store.get(2) == config.vouch_cap


@pytest.mark.asyncio
async def test_concurrent_vouches_are_serialized(platform, service, store):
    platform.yields = True
    platform.add_member(7)
    await asyncio.gather(*(service.vouch(GUILD_ID, voter, 7) for voter in range(20, 40)))
    assert store.get(7) == 20
    assert platform.roles_of(7) == {ROLE_B}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["command", "mention"])
async def test_vouch_during_scan_waits_for_it(path, platform, service, scanner, store):
    platform.add_member(7, roles={ROLE_A})
    _seed(store, 7, 14)
    paused, release = asyncio.Event(), asyncio.Event()
    platform.hold = (7, paused, release)

    scan = asyncio.create_task(scanner.scan(platform.channels[VOUCH_CHANNEL], GUILD_ID))
    await paused.wait()
    if path == "command":
        live = asyncio.create_task(service.vouch(GUILD_ID, 1, 7))
    else:
        live = asyncio.create_task(
            service.credit_mentions(GUILD_ID, mention_message(900, 1, 7))
        )
    for _ in range(10):
        await asyncio.sleep(0)

    # The scan is parked mid-reconcile holding the lock; the vouch must queue.
    assert store.get(7) == 14
    assert not live.done()

    release.set()
    await scan
    await live

    assert store.get(7) == 15
    assert platform.roles_of(7) == {ROLE_B}


@pytest.mark.asyncio
async def test_scan_and_live_mention_both_count(platform, service, scanner, store):
    platform.yields = True
    platform.add_member(7, roles={ROLE_A})
    _seed(store, 7, 12)
    platform.add_messages(VOUCH_CHANNEL, [mention_message(i, 9, 7) for i in range(1, 4)])

    await asyncio.gather(
        scanner.scan(platform.channels[VOUCH_CHANNEL], GUILD_ID),
        service.credit_mentions(GUILD_ID, mention_message(900, 1, 7)),
    )

    assert store.get(7) == 16
    assert platform.roles_of(7) == {ROLE_B}


def test_vouch_survives_failed_save(platform, service, store, tmp_path, caplog):
    platform.add_member(2)
    _seed(store, 2, 2)
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    store.path = blocked

    with caplog.at_level("ERROR"):
        update = asyncio.run(service.vouch(GUILD_ID, 9, 2))

    assert update.count == 3
    assert platform.roles_of(2) == {ROLE_A}
    assert "Failed to save vouch data" in caplog.text

    store.path = tmp_path / "vouchData.json"
    assert store.save() is True
    assert dict(VouchStore(store.path).load().items()) == {2: 3}
