"""Unit tests for taskloom.execution.events."""

from taskloom.execution import EventBus, ExecutionEvent, ExecutionEventType


def event(event_type: ExecutionEventType = ExecutionEventType.TASK_STARTED) -> ExecutionEvent:
    return ExecutionEvent(type=event_type, plan_id="plan_1", task_id="task_1")


class TestExecutionEvent:
    def test_defaults(self) -> None:
        created = event()

        assert created.id
        assert created.timestamp.tzinfo is not None
        assert created.payload == {}

    def test_type_values_use_dot_notation(self) -> None:
        assert ExecutionEventType.PLAN_COMPLETED.value == "execution.plan.completed"


class TestEventBus:
    """Subscription and delivery."""

    def test_delivers_in_subscription_order(self) -> None:
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(lambda e: seen.append("first"))
        bus.subscribe(lambda e: seen.append("second"))

        bus.publish(event())

        assert seen == ["first", "second"]
        assert len(bus) == 2

    def test_filters_by_event_type(self) -> None:
        bus = EventBus()
        seen: list[ExecutionEventType] = []
        bus.subscribe(lambda e: seen.append(e.type), [ExecutionEventType.TASK_FAILED])

        bus.publish(event(ExecutionEventType.TASK_STARTED))
        bus.publish(event(ExecutionEventType.TASK_FAILED))

        assert seen == [ExecutionEventType.TASK_FAILED]

    def test_failing_handler_does_not_stop_others(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def broken(_: ExecutionEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(lambda e: seen.append(e.plan_id))

        bus.publish(event())

        assert seen == ["plan_1"]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen: list[ExecutionEvent] = []
        subscription_id = bus.subscribe(seen.append)

        assert bus.unsubscribe(subscription_id)
        assert not bus.unsubscribe(subscription_id)
        bus.publish(event())

        assert seen == []

    def test_handler_may_unsubscribe_during_publish(self) -> None:
        bus = EventBus()
        seen: list[str] = []
        ids: dict[str, str] = {}

        def once(_: ExecutionEvent) -> None:
            seen.append("once")
            bus.unsubscribe(ids["once"])

        ids["once"] = bus.subscribe(once)
        bus.subscribe(lambda e: seen.append("always"))

        bus.publish(event())
        bus.publish(event())

        assert seen == ["once", "always", "always"]
