import base64

import pytest
from rich.text import Text

from kubelift.errors import ActionCancelledError, EventDetails, IaCApplyFailedError, Stage
from kubelift.lifecycle import LifecycleDispatcher
from kubelift.metrics import CollectingMessageSink, StepName, StepRegistry, StepStatus
from kubelift.schemas.upgrade import UpgradeStatus


@pytest.fixture
def provider(mocker, cluster):
    provider = mocker.Mock()
    provider.kind = "eks"
    provider.id = cluster.id
    provider.long_id = cluster.long_id
    provider.name = cluster.name
    provider.get_kubeconfig.return_value = "apiVersion: v1\nkind: Config\n"
    return provider


@pytest.fixture
def sink():
    return CollectingMessageSink()


@pytest.fixture
def registry(sink):
    return StepRegistry(sink)


def total_statuses(registry, provider):
    return [
        r.status for r in registry.get_records(provider.long_id) if r.step_name == StepName.TOTAL
    ]


def test_create_success_stores_kubeconfig(mocker, provider, registry, sink):
    secret_store = mocker.Mock()

    LifecycleDispatcher(provider, registry, secret_store).create()

    provider.on_create.assert_called_once()
    provider.on_create_error.assert_not_called()
    assert total_statuses(registry, provider) == [StepStatus.SUCCESS]
    assert len(sink.records) == 1

    cluster_id, encoded = secret_store.store_kubeconfig.call_args.args
    assert cluster_id == provider.id
    assert base64.b64decode(encoded).decode() == "apiVersion: v1\nkind: Config\n"


def test_create_failure_calls_error_hook(mocker, provider, registry):
    details = mocker.sentinel.details
    provider.event_details.return_value = details
    provider.on_create.side_effect = IaCApplyFailedError("apply failed")
    secret_store = mocker.Mock()

    with pytest.raises(IaCApplyFailedError) as exc_info:
        LifecycleDispatcher(provider, registry, secret_store).create()

    provider.event_details.assert_called_once_with(Stage.CREATE)
    assert exc_info.value.event_details is details
    provider.on_create_error.assert_called_once()
    assert total_statuses(registry, provider) == [StepStatus.ERROR]
    secret_store.store_kubeconfig.assert_not_called()


def test_failure_log_keeps_error_tag(mocker, provider, registry):
    logger = mocker.patch("kubelift.lifecycle.logger")
    provider.event_details.return_value = EventDetails(
        cluster_id="z1a2b3c4", cluster_name="qa-cluster", stage=Stage.UPGRADE, provider="eks"
    )
    provider.upgrade_with_status.side_effect = IaCApplyFailedError(
        "apply failed", underlying="[module.eks_node_group] timeout while waiting"
    )
    status = UpgradeStatus(requested_version="1.29", deployed_masters_version="1.28")

    with pytest.raises(IaCApplyFailedError):
        LifecycleDispatcher(provider, registry).upgrade(status)

    logged = Text.from_markup(logger.error.call_args.args[0]).plain
    assert "[IaCApplyFailed] apply failed" in logged
    assert "eks/qa-cluster (z1a2b3c4) [Upgrade]" in logged
    assert "[module.eks_node_group] timeout while waiting" in logged


def test_error_hook_failure_keeps_action_error(mocker, provider, registry):
    logger = mocker.patch("kubelift.lifecycle.logger")
    provider.on_pause.side_effect = RuntimeError("apply failed")
    provider.on_pause_error.side_effect = RuntimeError("hook failed")

    with pytest.raises(RuntimeError, match="apply failed"):
        LifecycleDispatcher(provider, registry).pause()

    assert total_statuses(registry, provider) == [StepStatus.ERROR]
    assert any("hook failed" in c.args[0] for c in logger.error.call_args_list)


def test_cancelled_action_skips_error_hook(provider, registry):
    provider.on_delete.side_effect = ActionCancelledError("cancelled by user")

    with pytest.raises(ActionCancelledError):
        LifecycleDispatcher(provider, registry).delete()

    provider.on_delete_error.assert_not_called()
    assert total_statuses(registry, provider) == [StepStatus.CANCEL]


def test_upgrade_passes_status(provider, registry):
    status = UpgradeStatus(requested_version="1.29", deployed_masters_version="1.28")

    LifecycleDispatcher(provider, registry).upgrade(status)

    provider.upgrade_with_status.assert_called_once_with(status)
    assert total_statuses(registry, provider) == [StepStatus.SUCCESS]


def test_delete_does_not_store_kubeconfig(mocker, provider, registry):
    secret_store = mocker.Mock()

    LifecycleDispatcher(provider, registry, secret_store).delete()

    provider.on_delete.assert_called_once()
    secret_store.store_kubeconfig.assert_not_called()


def test_secret_store_failure_is_not_fatal(mocker, provider, registry):
    secret_store = mocker.Mock()
    secret_store.store_kubeconfig.side_effect = RuntimeError("vault sealed")

    LifecycleDispatcher(provider, registry, secret_store).create()

    assert total_statuses(registry, provider) == [StepStatus.SUCCESS]


def test_missing_kubeconfig_is_not_stored(mocker, provider, registry):
    provider.get_kubeconfig.return_value = None
    secret_store = mocker.Mock()

    LifecycleDispatcher(provider, registry, secret_store).pause()

    secret_store.store_kubeconfig.assert_not_called()
