from __future__ import annotations

import random
import threading

from src.classsync.classsync.presence.source import SimulatedPresenceSource


def test_next_sighting_walks_the_roster_in_order():
    source = SimulatedPresenceSource(["S2", "S1"], delay_seconds=0, rng=random.Random(7))

    first = source.next_sighting()
    second = source.next_sighting()

    assert (first.student_id, first.device_id) == ("S1", "SIM-S1")
    assert second.student_id == "S2"
    assert -90 <= first.signal <= -40
    assert source.next_sighting() is None
    assert source.finished


def test_seeded_sources_are_reproducible():
    a = SimulatedPresenceSource(["S1", "S2", "S3"], rng=random.Random(42))
    b = SimulatedPresenceSource(["S1", "S2", "S3"], rng=random.Random(42))
    signals_a = [a.next_sighting().signal for _ in range(3)]
    signals_b = [b.next_sighting().signal for _ in range(3)]
    assert signals_a == signals_b


def test_start_emits_each_student_once():
    source = SimulatedPresenceSource(["S1", "S2"], delay_seconds=0.01, rng=random.Random(1))
    seen = []
    done = threading.Event()

    def emit(sighting):
        seen.append(sighting.student_id)
        if len(seen) == 2:
            done.set()

    source.start(emit)
    source.start(emit)  # second start is ignored
    assert done.wait(timeout=5)
    source.stop()

    assert seen == ["S1", "S2"]


def test_stop_before_first_tick_emits_nothing():
    source = SimulatedPresenceSource(["S1"], delay_seconds=5)
    seen = []
    source.start(seen.append)
    source.stop()

    assert source.finished
    assert source.next_sighting() is None
    assert seen == []


def test_emit_failures_do_not_stop_the_chain():
    source = SimulatedPresenceSource(["S1", "S2"], delay_seconds=0.01)
    done = threading.Event()
    calls = []

    def emit(sighting):
        calls.append(sighting.student_id)
        if len(calls) == 1:
            raise RuntimeError("downstream failure")
        done.set()

    source.start(emit)
    assert done.wait(timeout=5)
    source.stop()
    assert calls == ["S1", "S2"]
