# Overview: Pytest coverage for the saga runner.

"""
Saga Tests

Verifies ordered execution, reverse-order compensation and that a
failing compensation does not stop the others.
"""

import pytest
from kirana.services.saga import Saga, SagaError, SagaStep


def recorder():
    calls = []

    def step(name, fail=False):
        def _run(ctx):
            calls.append(name)
            if fail:
                raise RuntimeError(f"{name} failed")
            return f"{name}-result"
        return _run

    return calls, step


class TestSaga:
    def test_runs_steps_in_order_and_collects_results(self):
        calls, step = recorder()
        saga = Saga("demo", [SagaStep("a", step("a")), SagaStep("b", step("b"))])

        context = saga.run()

        assert calls == ["a", "b"]
        assert context == {"a": "a-result", "b": "b-result"}

    def test_failure_compensates_completed_steps_in_reverse(self):
        calls, step = recorder()
        saga = Saga("demo", [
            SagaStep("a", step("a"), compensation=step("undo-a")),
            SagaStep("b", step("b"), compensation=step("undo-b")),
            SagaStep("c", step("c", fail=True), compensation=step("undo-c")),
        ])

        with pytest.raises(SagaError) as exc:
            saga.run()

        assert calls == ["a", "b", "c", "undo-b", "undo-a"]
        assert exc.value.step == "c"
        assert str(exc.value) == "c failed"
        assert exc.value.compensation_failures == []

    def test_failing_compensation_is_skipped(self):
        calls, step = recorder()
        saga = Saga("demo", [
            SagaStep("a", step("a"), compensation=step("undo-a")),
            SagaStep("b", step("b"), compensation=step("undo-b", fail=True)),
            SagaStep("c", step("c", fail=True)),
        ])

        with pytest.raises(SagaError) as exc:
            saga.run()

        assert calls == ["a", "b", "c", "undo-b", "undo-a"]
        assert exc.value.compensation_failures == ["b"]
        assert isinstance(exc.value.cause, RuntimeError)

    def test_first_step_failure_has_nothing_to_undo(self):
        calls, step = recorder()
        saga = Saga("demo", [
            SagaStep("a", step("a", fail=True), compensation=step("undo-a")),
        ])

        with pytest.raises(SagaError):
            saga.run()

        assert calls == ["a"]

    def test_reset_runs_before_each_compensation(self):
        calls, step = recorder()
        saga = Saga(
            "demo",
            [
                SagaStep("a", step("a"), compensation=step("undo-a")),
                SagaStep("b", step("b", fail=True)),
            ],
            reset=lambda: calls.append("reset"),
        )

        with pytest.raises(SagaError):
            saga.run()

        assert calls == ["a", "b", "reset", "undo-a"]
