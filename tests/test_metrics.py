import uuid
from concurrent.futures import ThreadPoolExecutor

from kubelift.metrics import (
    CollectingMessageSink,
    StepLabel,
    StepName,
    StepRegistry,
    StepStatus,
)


def test_get_records_of_unknown_entity():
    registry = StepRegistry()
    assert registry.get_records(uuid.uuid4()) == []


def test_start_then_stop():
    registry = StepRegistry()
    id = uuid.uuid4()

    registry.start(id, StepLabel.ENVIRONMENT, StepName.DEPLOYMENT)
    registry.stop(id, StepName.DEPLOYMENT, StepStatus.SUCCESS)

    records = registry.get_records(id)
    assert len(records) == 1
    assert records[0].duration is not None
    assert records[0].status == StepStatus.SUCCESS
    assert records[0].label == StepLabel.ENVIRONMENT


def test_running_step_is_not_returned():
    registry = StepRegistry()
    id = uuid.uuid4()

    handle = registry.start(id, StepLabel.SERVICE, StepName.BUILD)

    assert registry.get_records(id) == []
    assert not handle.is_stopped()


def test_handle_released_without_stop():
    registry = StepRegistry()
    id = uuid.uuid4()

    with registry.start(id, StepLabel.SERVICE, StepName.GIT_CLONE):
        pass

    records = registry.get_records(id)
    assert len(records) == 1
    assert records[0].status == StepStatus.NOT_SET
    assert records[0].duration is not None


def test_handle_released_on_error():
    registry = StepRegistry()
    id = uuid.uuid4()

    try:
        with registry.start(id, StepLabel.SERVICE, StepName.BUILD):
            raise RuntimeError("docker daemon unreachable")
    except RuntimeError:
        pass

    assert registry.get_records(id)[0].status == StepStatus.NOT_SET


def test_handle_stop_is_kept_on_release():
    sink = CollectingMessageSink()
    registry = StepRegistry(sink)
    id = uuid.uuid4()

    with registry.start(id, StepLabel.SERVICE, StepName.BUILD) as handle:
        handle.stop(StepStatus.ERROR)
        assert handle.is_stopped()

    assert registry.get_records(id)[0].status == StepStatus.ERROR
    # the release does not publish a second record
    assert [r.status for r in sink.records] == [StepStatus.ERROR]


def test_close_is_idempotent():
    sink = CollectingMessageSink()
    registry = StepRegistry(sink)
    handle = registry.start(uuid.uuid4(), StepLabel.SERVICE, StepName.BUILD)

    handle.close()
    handle.close()

    assert len(sink.records) == 1


def test_duplicate_start_overwrites_previous_record(mocker):
    logger = mocker.patch("kubelift.metrics.logger")
    registry = StepRegistry()
    id = uuid.uuid4()

    registry.start(id, StepLabel.SERVICE, StepName.BUILD)
    registry.start(id, StepLabel.ENVIRONMENT, StepName.BUILD)
    registry.stop(id, StepName.BUILD, StepStatus.SUCCESS)

    records = registry.get_records(id)
    assert len(records) == 1
    assert records[0].label == StepLabel.ENVIRONMENT
    logger.error.assert_called_once()


def test_stop_without_start_is_logged(mocker):
    logger = mocker.patch("kubelift.metrics.logger")
    sink = mocker.Mock()
    registry = StepRegistry(sink)
    id = uuid.uuid4()

    registry.stop(id, StepName.TOTAL, StepStatus.SUCCESS)

    assert registry.get_records(id) == []
    sink.send.assert_not_called()
    logger.error.assert_called_once()


def test_second_stop_keeps_first_status(mocker):
    logger = mocker.patch("kubelift.metrics.logger")
    sink = CollectingMessageSink()
    registry = StepRegistry(sink)
    id = uuid.uuid4()

    registry.start(id, StepLabel.ENVIRONMENT, StepName.TOTAL)
    registry.stop(id, StepName.TOTAL, StepStatus.SUCCESS)
    registry.stop(id, StepName.TOTAL, StepStatus.ERROR)

    assert [r.status for r in registry.get_records(id)] == [StepStatus.SUCCESS]
    assert len(sink.records) == 1
    logger.error.assert_called_once()


def test_records_are_isolated_per_entity():
    registry = StepRegistry()
    first, second = uuid.uuid4(), uuid.uuid4()

    registry.start(first, StepLabel.SERVICE, StepName.BUILD).close()
    registry.start(second, StepLabel.SERVICE, StepName.DEPLOYMENT).close()

    assert [r.step_name for r in registry.get_records(first)] == [StepName.BUILD]
    assert [r.step_name for r in registry.get_records(second)] == [StepName.DEPLOYMENT]


def test_returned_records_are_copies():
    registry = StepRegistry()
    id = uuid.uuid4()
    registry.start(id, StepLabel.SERVICE, StepName.BUILD).close()

    registry.get_records(id)[0].status = StepStatus.SKIP

    assert registry.get_records(id)[0].status == StepStatus.NOT_SET


def test_clear():
    registry = StepRegistry()
    id = uuid.uuid4()
    registry.start(id, StepLabel.SERVICE, StepName.BUILD).close()

    registry.clear()

    assert registry.get_records(id) == []


def test_concurrent_steps_are_all_recorded():
    sink = CollectingMessageSink()
    registry = StepRegistry(sink)
    ids = [uuid.uuid4() for _ in range(8)]
    steps = list(StepName)

    def record_steps(id):
        for _ in range(50):
            for step_name in steps:
                with registry.start(id, StepLabel.SERVICE, step_name) as handle:
                    handle.stop(StepStatus.SUCCESS)

    with ThreadPoolExecutor(max_workers=len(ids)) as executor:
        list(executor.map(record_steps, ids))

    assert len(sink.records) == len(ids) * 50 * len(steps)
    for id in ids:
        records = registry.get_records(id)
        assert sorted(r.step_name for r in records) == sorted(steps)
        assert all(r.status == StepStatus.SUCCESS for r in records)
