"""Unit tests for the tick scheduler and engine lifecycle."""

import pytest

from ipcsim.core.actors import Actor, ActorState, Item, Phase
from ipcsim.core.channels import Mechanism, PriorityQueue
from ipcsim.core.config import SimulationConfig
from ipcsim.core.engine import HISTORY_LIMIT, SimulationEngine, advance_one_tick
from ipcsim.core.events import Severity


class TestScheduler:
    def test_tick_counts_every_step(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 500, 800)
        for expected in range(1, 6):
            advance_one_tick(engine)
            assert engine.tick == expected
            assert engine.metrics.tick_count == expected

    def test_actor_acts_on_its_period(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 300, 100)
        acted = []
        for _ in range(9):
            engine.step()
            acted.append(engine.actors[Actor.A].phase == Phase.RUNNING)
        assert acted == [False, False, True] * 3

    def test_non_acting_actor_goes_idle(self, bottleneck_engine):
        bottleneck_engine.step()
        assert bottleneck_engine.actors[Actor.A].phase == Phase.RUNNING
        assert bottleneck_engine.actors[Actor.B].phase == Phase.IDLE

    def test_deadlocked_phase_survives_idle(self):
        state = ActorState(Actor.A, 100, phase=Phase.DEADLOCKED)
        state.go_idle()
        assert state.phase == Phase.DEADLOCKED

    def test_step_returns_tick_events_in_order(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 1000, 100)
        events = engine.step()

        assert [ev.severity for ev in events] == [Severity.WARNING, Severity.WARNING]
        assert "Buffer Empty" in events[0].message
        assert events[1].message.startswith("Starvation")
        assert all(ev.tick == 1 and ev.timestamp == 100 for ev in events)


class TestOrdering:
    """Producer acts before consumer, diagnostics run last."""

    def test_consumer_sees_item_produced_same_tick(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 100, 100)
        events = engine.step()

        assert engine.actors[Actor.B].phase == Phase.RUNNING
        assert engine.metrics.consumed_count == 1
        assert len(engine.channel) == 0
        assert [ev.actor for ev in events] == [Actor.A, Actor.B]

    def test_consumer_frees_slot_after_producer_blocked(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 100, 100)
        for value in range(1, 11):
            engine.channel.push(Item(value, 1))

        events = engine.step()

        assert engine.actors[Actor.A].phase == Phase.BLOCKED
        assert engine.actors[Actor.B].phase == Phase.RUNNING
        assert len(engine.channel) == 9
        # the buffer is no longer full when diagnostics look at it
        assert not any(ev.message.startswith("Bottleneck") for ev in events)

    def test_reader_sees_value_written_same_tick(self, make_engine):
        engine = make_engine(Mechanism.SHARED_MEMORY, 100, 100)
        engine.step()
        messages = [ev.message for ev in engine.events]
        assert "[C-B] Read 1 from Shared Mem. Lock Acquired." in messages


class TestBottleneckScenario:
    def test_buffer_after_ten_ticks(self, bottleneck_engine):
        for _ in range(10):
            bottleneck_engine.step()

        assert len(bottleneck_engine.channel) == 9
        assert bottleneck_engine.metrics.produced_count == 10
        assert bottleneck_engine.metrics.consumed_count == 1

    def test_producer_blocks_once_full(self, bottleneck_engine):
        for _ in range(11):
            bottleneck_engine.step()
        assert len(bottleneck_engine.channel) == 10
        assert bottleneck_engine.actors[Actor.A].phase == Phase.RUNNING

        events = bottleneck_engine.step()

        assert bottleneck_engine.actors[Actor.A].phase == Phase.BLOCKED
        assert bottleneck_engine.actors[Actor.A].wait_ticks == 1
        assert any(ev.message.startswith("Bottleneck") for ev in events)

    def test_buffer_stays_bounded(self, make_engine):
        for mechanism in (Mechanism.PIPE, Mechanism.PRIORITY_QUEUE):
            for producer_ms, consumer_ms in ((100, 1000), (1000, 100), (200, 300)):
                engine = make_engine(mechanism, producer_ms, consumer_ms)
                for _ in range(300):
                    engine.step()
                    assert 0 <= len(engine.channel) <= engine.channel.capacity


class TestDeadlockRun:
    def test_deadlock_on_second_tick(self, deadlock_engine):
        deadlock_engine.step()
        assert not deadlock_engine.channel.deadlocked
        assert deadlock_engine.actors[Actor.A].phase == Phase.RUNNING
        assert deadlock_engine.actors[Actor.B].phase == Phase.RUNNING

        events = deadlock_engine.step()

        assert deadlock_engine.channel.deadlocked
        assert events[-1].severity == Severity.DEADLOCK
        assert all(st.phase == Phase.DEADLOCKED for st in deadlock_engine.actors.values())
        assert deadlock_engine.halted

    def test_run_halts_on_deadlock(self, deadlock_engine):
        steps = deadlock_engine.run(max_steps=50)
        assert steps == 2
        assert not deadlock_engine.running

    def test_deadlocked_actors_stay_pinned(self, deadlock_engine):
        deadlock_engine.run(max_steps=50)
        frozen = deadlock_engine.channel.snapshot()

        for _ in range(5):
            events = deadlock_engine.step()
            assert all(st.phase == Phase.DEADLOCKED for st in deadlock_engine.actors.values())
            assert deadlock_engine.channel.snapshot() == frozen
            assert events[-1].severity == Severity.DEADLOCK
        assert not deadlock_engine.running

    def test_detected_from_producer_side(self, make_engine):
        """B queued on R1 first, A closes the cycle when it asks for R2."""
        engine = make_engine(Mechanism.RESOURCE_PAIR, 200, 100)
        for _ in range(3):
            engine.step()
        assert not engine.channel.deadlocked

        engine.step()
        assert engine.channel.deadlocked
        assert engine.tick == 4

    def test_same_tick_every_run(self, make_engine):
        ticks = []
        for seed in (1, 2, 3):
            engine = make_engine(Mechanism.RESOURCE_PAIR, 100, 100, seed=seed)
            engine.run(max_steps=100)
            ticks.append(engine.tick)
        assert ticks == [2, 2, 2]


class TestLifecycle:
    def test_start_pause_are_idempotent(self, make_engine):
        engine = make_engine()
        engine.start()
        engine.start()
        assert engine.running
        engine.pause()
        engine.pause()
        assert not engine.running

    def test_toggle(self, make_engine):
        engine = make_engine()
        engine.toggle()
        assert engine.running
        engine.toggle()
        assert not engine.running

    def test_pause_keeps_state(self, bottleneck_engine):
        bottleneck_engine.start()
        for _ in range(7):
            bottleneck_engine.step()
        before = bottleneck_engine.snapshot()

        bottleneck_engine.pause()
        after = bottleneck_engine.snapshot()

        before.pop("running")
        after.pop("running")
        assert before == after

        bottleneck_engine.start()
        bottleneck_engine.step()
        assert bottleneck_engine.tick == 8

    def test_reset_restores_initial_state(self, bottleneck_engine):
        fresh = SimulationEngine(bottleneck_engine.config).snapshot()
        bottleneck_engine.start()
        for _ in range(25):
            bottleneck_engine.step()

        for _ in range(3):
            bottleneck_engine.reset()
            assert bottleneck_engine.snapshot() == fresh
            assert len(bottleneck_engine.events) == 0
            assert not bottleneck_engine.running
            assert all(len(h) == 0 for h in bottleneck_engine.state_history.values())
            assert dict(bottleneck_engine.block_counts) == {}
            assert sum(bottleneck_engine.issue_counts.values()) == 0

    def test_reset_clears_deadlock(self, deadlock_engine):
        deadlock_engine.run(max_steps=10)
        deadlock_engine.reset()

        assert not deadlock_engine.channel.deadlocked
        assert not deadlock_engine.halted
        assert all(st.phase == Phase.IDLE for st in deadlock_engine.actors.values())

    def test_reset_replays_same_items(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 100, 1000, seed=7)
        for _ in range(8):
            engine.step()
        first_run = engine.channel.snapshot()

        engine.reset()
        for _ in range(8):
            engine.step()
        assert engine.channel.snapshot() == first_run

    def test_mechanism_change_resets(self, bottleneck_engine):
        for _ in range(5):
            bottleneck_engine.step()
        bottleneck_engine.start()

        bottleneck_engine.set_mechanism(Mechanism.PRIORITY_QUEUE)

        assert isinstance(bottleneck_engine.channel, PriorityQueue)
        assert bottleneck_engine.tick == 0
        assert not bottleneck_engine.running
        assert bottleneck_engine.metrics.produced_count == 0

    @pytest.mark.parametrize(
        "raw, expected",
        [(50, 100), ("abc", 100), ("250ms", 250), (1200, 1200)],
    )
    def test_set_periods_normalizes(self, make_engine, raw, expected):
        engine = make_engine(Mechanism.PIPE, 500, 800)
        engine.set_periods(consumer_ms=raw)
        assert engine.actors[Actor.B].period_ms == expected
        assert engine.config.consumer_period_ms == expected
        assert engine.actors[Actor.A].period_ms == 500

    def test_counts_never_decrease(self, make_engine):
        for mechanism in Mechanism:
            engine = make_engine(mechanism, 200, 300)
            produced = consumed = 0
            for _ in range(200):
                engine.step()
                assert engine.metrics.produced_count >= produced
                assert engine.metrics.consumed_count >= consumed
                produced = engine.metrics.produced_count
                consumed = engine.metrics.consumed_count

    def test_mutex_never_held_between_ticks(self, make_engine):
        engine = make_engine(Mechanism.SHARED_MEMORY, 100, 200)
        for _ in range(150):
            engine.step()
            assert engine.channel.lock_holder in (None, Actor.A, Actor.B)
            assert engine.channel.lock_holder is None

    def test_snapshot_shape(self, make_engine):
        engine = make_engine(Mechanism.SHARED_MEMORY)
        snap = engine.snapshot()
        assert snap["mechanism"] == "SHARED_MEMORY"
        assert snap["channel"] == {
            "mechanism": "SHARED_MEMORY",
            "value": 0,
            "access_count": 0,
            "lock_holder": None,
        }
        assert snap["actors"]["A"]["phase"] == "IDLE"
        assert snap["metrics"]["tick_count"] == 0

    def test_phase_history_is_bounded(self, make_engine):
        engine = make_engine(Mechanism.PIPE, 200, 300)
        for _ in range(HISTORY_LIMIT + 100):
            engine.step()

        for actor, history in engine.state_history.items():
            assert len(history) == HISTORY_LIMIT
            assert history[-1] == engine.actors[actor].phase

    def test_default_config(self):
        engine = SimulationEngine()
        assert engine.config == SimulationConfig()
        assert engine.channel.mechanism == Mechanism.PIPE
