import math
import random
import threading

import pytest

from basecanvas.services.canvas.airdrop import AirdropScheduler
from basecanvas.services.canvas.state import CanvasState


@pytest.fixture()
def state():
    return CanvasState(100, 300_000)


@pytest.fixture()
def scheduler(state, broadcaster, tasks, sleeps):
    ticks = iter(range(1_000_000, 2_000_000, 1000))
    return AirdropScheduler(state, broadcaster, interval=300, ttl=60, spawn=tasks, sleep=sleeps,
                            rng=random.Random(7), clock=lambda: next(ticks))


def test_spawn_only_when_slot_empty(scheduler, broadcaster, tasks):
    first = scheduler.try_spawn()
    assert first is not None
    assert scheduler.try_spawn() is None
    assert scheduler.current() == first
    assert broadcaster.names() == ['spawn-airdrop']
    # one expiry task armed for the live instance
    assert len(tasks.tasks) == 1


def test_instance_payload(scheduler):
    instance = scheduler.try_spawn()
    data = instance.to_dict()
    assert data['id'] == instance.id
    assert data['expiresAt'] - data['spawnedAt'] == 60_000
    assert 0 <= data['position']['theta'] < 2 * math.pi
    assert 0 <= data['position']['phi'] <= math.pi


def test_expiry_task_clears_slot(scheduler, broadcaster, tasks, sleeps):
    instance = scheduler.try_spawn()
    tasks.run_all()
    assert sleeps.delays == [60]
    assert scheduler.current() is None
    assert broadcaster.events[-1] == ('airdrop-expired', {'id': instance.id})


def test_claim_requires_matching_id(scheduler, state):
    instance = scheduler.try_spawn()
    state.cooldowns.commit('X', 1)
    assert scheduler.claim('X', 'airdrop-0') is False
    assert scheduler.current() == instance
    assert state.cooldowns.last_accepted('X') == 1
    assert scheduler.claim('X', instance.id) is True
    assert scheduler.current() is None
    assert state.cooldowns.last_accepted('X') == 0


def test_claim_without_instance_fails(scheduler):
    assert scheduler.claim('X', 'airdrop-1') is False


def test_expiry_after_claim_is_noop(scheduler, broadcaster, tasks):
    instance = scheduler.try_spawn()
    assert scheduler.claim('X', instance.id)
    tasks.run_all()
    assert broadcaster.names() == ['spawn-airdrop', 'airdrop-claimed']


def test_claim_after_expiry_is_noop(scheduler, broadcaster, state):
    instance = scheduler.try_spawn()
    state.cooldowns.commit('X', 1)
    assert scheduler.expire(instance.id)
    assert scheduler.claim('X', instance.id) is False
    assert state.cooldowns.last_accepted('X') == 1
    assert broadcaster.names() == ['spawn-airdrop', 'airdrop-expired']


def test_stale_expiry_does_not_clear_newer_instance(scheduler, tasks):
    first = scheduler.try_spawn()
    scheduler.claim('X', first.id)
    second = scheduler.try_spawn()
    assert second.id != first.id
    # first instance's expiry task fires late
    fn, args, kwargs = tasks.tasks[0]
    fn(*args, **kwargs)
    assert scheduler.current() == second


def test_racing_claims_have_one_winner(scheduler):
    instance = scheduler.try_spawn()
    results = []
    barrier = threading.Barrier(8)

    def contender(n):
        barrier.wait()
        results.append(scheduler.claim(f'actor{n}', instance.id))

    threads = [threading.Thread(target=contender, args=(n,)) for n in range(7)]
    threads.append(threading.Thread(target=lambda: (barrier.wait(), results.append(scheduler.expire(instance.id)))))
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1


def test_loop_spawns_on_interval(scheduler, tasks, sleeps):
    sleeps_seen = []

    def stop_after_first(seconds):
        sleeps_seen.append(seconds)
        if len(sleeps_seen) > 1:
            scheduler.stop()

    scheduler._sleep = stop_after_first
    scheduler.start()
    loop_fn, args, kwargs = tasks.tasks.pop(0)
    loop_fn(*args, **kwargs)
    assert sleeps_seen == [300, 300]
    assert scheduler.current() is not None
