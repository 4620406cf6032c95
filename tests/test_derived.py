"""Tests for lazily evaluated derived atoms."""

import pytest

from atomx import InvalidSelfReadError, UninitializedAtomError, atom, create_store
from atomx._state import AtomState


class TestLazyRead:
    def test_lazy_eval(self):
        store = create_store()
        call_count = 0
        count = atom(5)

        def read(get):
            nonlocal call_count
            call_count += 1
            return get(count) * 2

        double = atom(read)
        assert call_count == 0  # not yet evaluated
        assert store.get(double) == 10
        assert call_count == 1

    def test_idempotent_read(self):
        store = create_store()
        call_count = 0
        count = atom(5)

        def read(get):
            nonlocal call_count
            call_count += 1
            return [get(count)]

        wrapped = atom(read)
        first = store.get(wrapped)
        assert store.get(wrapped) is first
        assert call_count == 1

    def test_invalidation(self):
        store = create_store()
        count = atom(5)
        double = atom(lambda get: get(count) * 2)
        assert store.get(double) == 10
        store.set(count, 10)
        assert store.get(double) == 20

    def test_derived_consistency(self):
        store = create_store()
        count = atom(0)
        double = atom(lambda get: get(count) * 2)
        for n in range(-50, 50, 7):
            store.set(count, n)
            assert store.get(double) == n * 2

    def test_chained(self):
        store = create_store()
        count = atom(3)
        doubled = atom(lambda get: get(count) * 2)
        quadrupled = atom(lambda get: get(doubled) * 2)
        assert store.get(quadrupled) == 12
        store.set(count, 5)
        assert store.get(quadrupled) == 20

    def test_unchanged_dependency_skips_dependent(self):
        """A dependent is not re-read when its dependency's value is unchanged."""
        store = create_store()
        calls = []
        count = atom(1)
        parity = atom(lambda get: get(count) % 2)
        label = atom(lambda get: calls.append(1) or ("odd" if get(parity) else "even"))
        assert store.get(label) == "odd"
        store.set(count, 3)
        assert store.get(label) == "odd"
        assert calls == [1]


class TestDynamicDependencies:
    def test_switches_branch(self):
        store = create_store()
        flag = atom(True)
        a = atom(1)
        b = atom(2)
        c = atom(lambda get: get(a) if get(flag) else get(b))
        assert store.get(c) == 1
        store.set(flag, False)
        assert store.get(c) == 2

    def test_stale_branch_not_tracked(self):
        store = create_store()
        calls = []
        flag = atom(True)
        a = atom(1)
        b = atom(2)

        def read(get):
            calls.append(1)
            return get(a) if get(flag) else get(b)

        c = atom(read)
        store.set(flag, False)
        assert store.get(c) == 2
        assert len(calls) == 1
        store.set(a, 100)  # no longer a dependency
        assert store.get(c) == 2
        assert len(calls) == 1

    def test_dependencies_match_reads(self):
        store = create_store()
        flag = atom(True)
        a = atom(1)
        b = atom(2)
        c = atom(lambda get: get(a) if get(flag) else get(b))
        store.get(c)
        assert list(store._states[c].dependencies) == [flag, a]
        store.set(flag, False)
        store.get(c)
        assert list(store._states[c].dependencies) == [flag, b]


class TestErrors:
    def test_read_error_is_stored_and_reraised(self):
        store = create_store()
        boom = ValueError("boom")
        calls = []

        def read(get):
            calls.append(1)
            raise boom

        bad = atom(read)
        with pytest.raises(ValueError) as first:
            store.get(bad)
        with pytest.raises(ValueError) as second:
            store.get(bad)
        assert first.value is boom
        assert second.value is boom
        assert calls == [1]

    def test_error_reaches_dependents(self):
        store = create_store()
        bad = atom(lambda get: 1 / 0)
        dependent = atom(lambda get: get(bad) + 1)
        with pytest.raises(ZeroDivisionError):
            store.get(dependent)

    def test_dependent_may_catch(self):
        store = create_store()
        bad = atom(lambda get: 1 / 0)

        def read(get):
            try:
                return get(bad)
            except ZeroDivisionError:
                return "fallback"

        safe = atom(read)
        assert store.get(safe) == "fallback"

    def test_recovers_when_dependency_changes(self):
        store = create_store()
        divisor = atom(0)
        ratio = atom(lambda get: 10 / get(divisor))
        with pytest.raises(ZeroDivisionError):
            store.get(ratio)
        store.set(divisor, 2)
        assert store.get(ratio) == 5

    def test_error_counts_as_change(self):
        store = create_store()
        divisor = atom(1)
        ratio = atom(lambda get: 10 // get(divisor))
        log = []
        store.subscribe(ratio, lambda: log.append(1))
        store.set(divisor, 0)
        assert log == [1]
        store.set(divisor, 5)
        assert log == [1, 1]
        assert store.get(ratio) == 2
        store.set(divisor, 0)
        assert log == [1, 1, 1]
        with pytest.raises(ZeroDivisionError):
            store.get(ratio)


class TestSelfRead:
    def test_self_read_without_initial(self):
        store = create_store()
        loop = atom(lambda get: get(loop))
        with pytest.raises(InvalidSelfReadError) as exc_info:
            store.get(loop)
        assert exc_info.value.atom is loop
        assert isinstance(store._states[loop].error, InvalidSelfReadError)

    def test_self_read_seeds_initial(self):
        store = create_store()
        calls = []

        def read(get):
            calls.append(1)
            return get(counter) + 1

        counter = atom(read, initial=0)
        assert store.get(counter) == 1
        assert store.get(counter) == 1
        assert calls == [1]
        assert counter not in store._states[counter].dependencies

    def test_self_read_sees_previous_value(self):
        store = create_store()
        step = atom(1)
        total = atom(lambda get: get(total) + get(step), initial=0)
        assert store.get(total) == 1
        store.set(step, 10)
        assert store.get(total) == 11


class TestStateRecord:
    def test_uninitialized_access(self):
        with pytest.raises(UninitializedAtomError):
            AtomState().unwrap()

    def test_epoch_bumps_only_on_change(self):
        state = AtomState()
        state.set_value(1)
        assert state.epoch == 1
        state.set_value(1)
        assert state.epoch == 1
        state.set_error(RuntimeError())
        state.set_error(RuntimeError())
        assert state.epoch == 3
        state.set_value(1)
        assert state.epoch == 4
