import re

import pytest

import nodesmith.core as core_module
from nodesmith.core import NodeSetup
from nodesmith.errors import ArtifactWriteError
from nodesmith.models import SyncReport, SyncStatus


class FakeDockerRuntime:
    def __init__(self):
        self.started = []
        self.detections = 0

    def get_docker_compose_cmd(self):
        self.detections += 1
        return ["docker", "compose"]

    def up_command(self, compose_cmd, manifest_path, services):
        return list(compose_cmd) + ["-f", manifest_path, "up", "-d"] + list(services)

    def start_services(self, compose_cmd, manifest_path, services):
        self.started.append(list(services))


class FakeTracker:
    instances = []

    def __init__(self, state="synced", error=None):
        self.state = state
        self.error = error
        self.stopped = False
        self.endpoints = None
        self.kwargs = None

    def __call__(self, execution_endpoint, consensus_endpoint, **kwargs):
        self.endpoints = (execution_endpoint, consensus_endpoint)
        self.kwargs = kwargs
        return self

    def run(self):
        if self.error is not None:
            raise self.error
        return SyncReport(state=self.state, status=SyncStatus(last_error="boom"), ticks=1, deadline=300.0)

    def stop(self):
        self.stopped = True


def build_setup(tmp_path, tracker=None, **kwargs):
    kwargs.setdefault("network", "sepolia")
    setup = NodeSetup(path=str(tmp_path / "node"), **kwargs)
    setup.docker_runtime_service = FakeDockerRuntime()
    setup.tracker_factory = tracker or FakeTracker()
    return setup


def test_generation_only_writes_artifacts_and_jwt_secret(tmp_path):
    setup = build_setup(tmp_path, run_clients=[])

    assert setup.run() == 0

    output = tmp_path / "node"
    assert (output / ".env").exists()
    assert (output / "docker-compose.yml").exists()
    assert re.fullmatch(r"[0-9a-f]{64}", (output / "jwtsecret").read_text(encoding="utf-8"))
    assert f"JWT_SECRET_PATH={output / 'jwtsecret'}" in (output / ".env").read_text(encoding="utf-8")
    assert setup.docker_runtime_service.started == []


def test_without_run_flag_nothing_is_started(tmp_path):
    setup = build_setup(tmp_path)

    assert setup.run() == 0
    assert setup.docker_runtime_service.started == []
    assert setup.docker_runtime_service.detections == 0


def test_existing_relative_jwt_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    setup = build_setup(tmp_path, jwt_secret_path="secrets/jwtsecret", run_clients=[])

    assert setup.run() == 0

    env_text = (tmp_path / "node" / ".env").read_text(encoding="utf-8")
    assert f"JWT_SECRET_PATH={tmp_path / 'secrets' / 'jwtsecret'}" in env_text
    assert not (tmp_path / "node" / "jwtsecret").exists()


def test_run_tracks_sync_before_starting_validator(tmp_path):
    tracker = FakeTracker()
    setup = build_setup(tmp_path, tracker=tracker, run=True, consensus="prysm")

    assert setup.run() == 0
    assert setup.docker_runtime_service.started == [["execution", "consensus"], ["validator"]]
    assert tracker.endpoints == ("http://localhost:8545", "http://localhost:3500")
    assert tracker.kwargs["deadline"] == 300.0


def test_sync_timeout_warns_and_still_starts_validator(tmp_path):
    setup = build_setup(tmp_path, tracker=FakeTracker(state="timed-out"), run=True, sync_timeout_minutes=1)

    assert setup.run() == 0
    assert setup.docker_runtime_service.started[-1] == ["validator"]
    assert setup.tracker_factory.kwargs["deadline"] == 60.0


def test_sync_tracking_error_fails_the_run(tmp_path):
    setup = build_setup(tmp_path, tracker=FakeTracker(state="errored"), run=True)

    assert setup.run() == 1
    assert setup.docker_runtime_service.started == [["execution", "consensus"]]


def test_cancelled_sync_tracking_returns_failure(tmp_path):
    tracker = FakeTracker(error=KeyboardInterrupt())
    setup = build_setup(tmp_path, tracker=tracker, run=True)

    assert setup.run() == 1
    assert tracker.stopped is True
    assert setup.docker_runtime_service.started == [["execution", "consensus"]]


def test_cancelled_tracker_state_fails_without_starting_validator(tmp_path):
    tracker = FakeTracker(state="cancelled")
    setup = build_setup(tmp_path, tracker=tracker, run=True)

    assert setup.run() == 1
    assert tracker.endpoints is not None
    assert setup.docker_runtime_service.started == [["execution", "consensus"]]


def test_validator_in_run_clients_skips_sync_tracking(tmp_path):
    tracker = FakeTracker()
    setup = build_setup(tmp_path, tracker=tracker, run=True, run_clients=["execution", "consensus", "validator"])

    assert setup.run() == 0
    assert setup.docker_runtime_service.started == [["execution", "consensus", "validator"]]
    assert tracker.endpoints is None


def test_no_validator_skips_sync_tracking(tmp_path):
    tracker = FakeTracker()
    setup = build_setup(tmp_path, tracker=tracker, run=True, no_validator=True)

    assert setup.run() == 0
    assert setup.docker_runtime_service.started == [["execution", "consensus"]]
    assert tracker.endpoints is None
    assert "validator" not in (tmp_path / "node" / "docker-compose.yml").read_text(encoding="utf-8")


def test_invalid_fee_recipient_fails_before_writing_anything(tmp_path):
    setup = build_setup(tmp_path, fee_recipient="0xnope")

    assert setup.run() == 1
    assert not (tmp_path / "node").exists()


def test_unsupported_client_returns_failure(tmp_path):
    setup = build_setup(tmp_path, network="gnosis", execution="geth")

    assert setup.run() == 1


def test_custom_image_is_written_and_warned(tmp_path, monkeypatch):
    warnings = []
    monkeypatch.setattr(core_module.logger, "warning", lambda message, *args: warnings.append(message % args))
    setup = build_setup(tmp_path, execution="geth:ethereum/client-go:latest", map_all=True, run_clients=[])

    assert setup.run() == 0

    env_text = (tmp_path / "node" / ".env").read_text(encoding="utf-8")
    assert "EC_IMAGE_VERSION=ethereum/client-go:latest" in env_text
    assert any("ethereum/client-go:latest" in warning for warning in warnings)
    assert any("Mapping all client ports" in warning for warning in warnings)


def test_unexpected_errors_are_reported_as_failure(tmp_path, monkeypatch):
    setup = build_setup(tmp_path)

    def broken_generate(*_args, **_kwargs):
        raise ValueError("unexpected")

    monkeypatch.setattr(setup.pipeline, "generate", broken_generate)

    assert setup.run() == 1


@pytest.mark.parametrize("network", ["mainnet", "holesky", "gnosis", "chiado"])
def test_default_selection_generates_on_every_network(tmp_path, network):
    setup = build_setup(tmp_path, network=network, run_clients=[])

    assert setup.run() == 0
    assert f"NETWORK={network}" in (tmp_path / "node" / ".env").read_text(encoding="utf-8")


def test_omitted_validator_is_dropped_from_run_clients(tmp_path):
    tracker = FakeTracker()
    setup = build_setup(
        tmp_path,
        tracker=tracker,
        run=True,
        validator="none",
        run_clients=["execution", "consensus", "validator"],
    )

    assert setup.run() == 0
    assert setup.docker_runtime_service.started == [["execution", "consensus"]]
    assert tracker.endpoints is None


def test_fallback_urls_warn_for_consensus_clients_without_support(tmp_path, monkeypatch):
    warnings = []
    monkeypatch.setattr(core_module.logger, "warning", lambda message, *args: warnings.append(message % args))
    setup = build_setup(tmp_path, consensus="teku", fallback_execution_urls=["https://a.example"], run_clients=[])

    assert setup.run() == 0
    assert any("teku consensus client does not support fallback" in warning for warning in warnings)


def test_fallback_urls_do_not_warn_for_supporting_consensus_client(tmp_path, monkeypatch):
    warnings = []
    monkeypatch.setattr(core_module.logger, "warning", lambda message, *args: warnings.append(message % args))
    setup = build_setup(tmp_path, consensus="prysm", fallback_execution_urls=["https://a.example"], run_clients=[])

    assert setup.run() == 0
    assert not any("fallback" in warning for warning in warnings)


def test_failed_generation_removes_freshly_written_jwt_secret(tmp_path, monkeypatch):
    setup = build_setup(tmp_path)

    def failing_generate(*_args, **_kwargs):
        raise ArtifactWriteError("disk full")

    monkeypatch.setattr(setup.pipeline, "generate", failing_generate)

    assert setup.run() == 1
    assert not (tmp_path / "node" / "jwtsecret").exists()
    assert not (tmp_path / "node").exists()


def test_failed_generation_keeps_existing_output_directory(tmp_path, monkeypatch):
    (tmp_path / "node").mkdir()
    (tmp_path / "node" / "keep.txt").write_text("x", encoding="utf-8")
    setup = build_setup(tmp_path)

    def failing_generate(*_args, **_kwargs):
        raise ArtifactWriteError("disk full")

    monkeypatch.setattr(setup.pipeline, "generate", failing_generate)

    assert setup.run() == 1
    assert not (tmp_path / "node" / "jwtsecret").exists()
    assert (tmp_path / "node" / "keep.txt").exists()
