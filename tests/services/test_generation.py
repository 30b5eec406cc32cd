import pytest
import yaml

from nodesmith.errors import ArtifactWriteError, InvalidFeeRecipientError, InvalidOptionError
from nodesmith.models import GenerationOptions
from nodesmith.services.filesystem import FileSystemService
from nodesmith.services.generation import (
    GenerationPipeline,
    clean_generated_text,
    parse_env_text,
    published_host_port,
)
from nodesmith.services.resolver import CombinationResolver


def _options(path, **overrides) -> GenerationOptions:
    values = {"network": "mainnet", "path": str(path), "jwt_path": "/tmp/nodesmith/jwtsecret"}
    values.update(overrides)
    return GenerationOptions(**values)


def test_clean_generated_text_drops_empty_assignments_and_blank_runs():
    raw = "# --- Network ---\nNETWORK=mainnet\nCC_BOOTNODES=\n\n\n\n# --- Other ---\n  - EMPTY=\nKEEP=1\n\n"

    cleaned = clean_generated_text(raw)

    assert cleaned == "# --- Network ---\nNETWORK=mainnet\n\n# --- Other ---\nKEEP=1\n"
    assert clean_generated_text(cleaned) == cleaned


def test_parse_env_text_ignores_comments_and_blank_lines():
    values = parse_env_text("# comment\n\nA=1\nB=x=y\n")

    assert values == {"A": "1", "B": "x=y"}


def test_published_host_port_reads_tcp_bindings_only():
    bindings = ["30303:30303/udp", "127.0.0.1:8545:8545", "9000:9000"]

    assert published_host_port(bindings, 8545) == 8545
    assert published_host_port(bindings, 30303) is None
    assert published_host_port(None, 8545) is None


def test_generate_writes_both_artifacts_and_resolves_ports(tmp_path):
    resolver = CombinationResolver()
    selection = resolver.resolve("mainnet", consensus="prysm")
    output = tmp_path / "node"

    result = GenerationPipeline().generate(selection, _options(output, mev_enabled=True))

    env_text = (output / ".env").read_text(encoding="utf-8")
    manifest = yaml.safe_load((output / "docker-compose.yml").read_text(encoding="utf-8"))

    assert result.env_file_path == str(output / ".env")
    assert result.manifest_path == str(output / "docker-compose.yml")
    assert result.execution_port == 8545
    assert result.consensus_port == 3500
    assert "NETWORK=mainnet" in env_text
    assert "CHECKPOINT_SYNC_URL=" not in env_text
    assert "\n\n\n" not in env_text
    assert set(manifest["services"]) >= {"execution", "consensus", "validator", "mev-boost"}


def test_generate_is_deterministic(tmp_path):
    selection = CombinationResolver().resolve("holesky", execution="erigon", consensus="lodestar")
    pipeline = GenerationPipeline()

    pipeline.generate(selection, _options(tmp_path / "a", network="holesky"))
    pipeline.generate(selection, _options(tmp_path / "b", network="holesky"))

    for name in (".env", "docker-compose.yml"):
        assert (tmp_path / "a" / name).read_bytes() == (tmp_path / "b" / name).read_bytes()


def test_invalid_fee_recipient_writes_nothing(tmp_path):
    selection = CombinationResolver().resolve("mainnet")
    output = tmp_path / "node"

    with pytest.raises(InvalidFeeRecipientError):
        GenerationPipeline().generate(selection, _options(output, fee_recipient="not-an-address"))

    assert not output.exists()


def test_manifest_write_failure_removes_env_file(tmp_path):
    class FailingManifestFileSystem(FileSystemService):
        def write_text_atomic(self, path, content):
            if path.endswith("docker-compose.yml"):
                raise OSError("disk full")
            super().write_text_atomic(path, content)

    selection = CombinationResolver().resolve("mainnet")
    output = tmp_path / "node"
    pipeline = GenerationPipeline(filesystem_service=FailingManifestFileSystem())

    with pytest.raises(ArtifactWriteError, match="disk full"):
        pipeline.generate(selection, _options(output))

    assert not (output / ".env").exists()
    assert not (output / "docker-compose.yml").exists()


def test_multiline_graffiti_cannot_override_fee_recipient(tmp_path):
    selection = CombinationResolver().resolve("mainnet")
    output = tmp_path / "node"
    options = _options(
        output,
        fee_recipient="0x" + "a" * 40,
        graffiti="hello\nFEE_RECIPIENT=0x" + "b" * 40,
    )

    with pytest.raises(InvalidOptionError, match="Graffiti"):
        GenerationPipeline().generate(selection, options)

    assert not output.exists()
