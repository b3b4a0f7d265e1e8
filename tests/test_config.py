"""Tests for configuration loading."""

from pathlib import Path

import pytest

from sq2pq.config.settings import (
    DEFAULT_PROVIDER_URL,
    Config,
    ConfigurationError,
    ProcessingConfig,
    UploadConfig,
    load_export_file,
)
from sq2pq.domain.enums import PhysicalType

ENV_VARS = [
    "ENVIRONMENT",
    "SQ2PQ_OUTPUT_DIR",
    "SQ2PQ_WORKERS",
    "SQ2PQ_QUEUE_SIZE",
    "SQ2PQ_ROW_GROUP_SIZE",
    "SQ2PQ_COMPRESSION",
    "BASIN_PROVIDER_URL",
    "BASIN_VAULT",
    "BASIN_PRIVATE_KEY",
    "BASIN_HTTP_METHOD",
    "BASIN_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Unset every setting so values loaded from .env files are undone after each test."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestConfig:
    """Tests for environment driven configuration."""

    def test_defaults(self, tmp_path):
        config = Config(base_dir=tmp_path)

        assert config.processing == ProcessingConfig()
        assert config.processing.workers == 10
        assert config.processing.queue_size == 1000
        assert config.output.output_dir == Path("output")
        assert config.upload.provider_url == DEFAULT_PROVIDER_URL
        assert config.upload.vault == ""

    def test_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SQ2PQ_WORKERS", "4")
        monkeypatch.setenv("SQ2PQ_COMPRESSION", "ZSTD")
        monkeypatch.setenv("BASIN_HTTP_METHOD", "put")
        monkeypatch.setenv("BASIN_TIMEOUT", "12.5")

        config = Config(base_dir=tmp_path)

        assert config.processing.workers == 4
        assert config.processing.compression == "zstd"
        assert config.upload.method == "PUT"
        assert config.upload.timeout_s == 12.5

    def test_env_file_loading(self, tmp_path):
        (tmp_path / ".env").write_text("BASIN_VAULT=generic.vault\nSQ2PQ_WORKERS=3\n")
        (tmp_path / ".env.staging").write_text("BASIN_VAULT=staging.vault\n")

        config = Config(environment="staging", base_dir=tmp_path)

        assert config.upload.vault == "staging.vault"
        assert config.processing.workers == 3
        assert config.get_summary()["loaded_env_files"] == [
            str(tmp_path / ".env.staging"),
            str(tmp_path / ".env"),
        ]

    def test_explicit_env_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("SQ2PQ_OUTPUT_DIR=exports\n")

        config = Config(env_file=env_file, base_dir=tmp_path)
        assert config.output.output_dir == Path("exports")

    def test_missing_explicit_env_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(env_file=tmp_path / "missing.env")

    @pytest.mark.parametrize("name,value", [
        ("SQ2PQ_WORKERS", "0"),
        ("SQ2PQ_WORKERS", "many"),
        ("SQ2PQ_COMPRESSION", "brotli"),
        ("BASIN_HTTP_METHOD", "DELETE"),
        ("BASIN_TIMEOUT", "-1"),
    ])
    def test_invalid_values(self, tmp_path, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            Config(base_dir=tmp_path)

    def test_upload_requires_credentials(self, tmp_path):
        config = Config(base_dir=tmp_path)
        with pytest.raises(ConfigurationError, match="Vault cannot be empty"):
            config.validate_upload()

    def test_repr_hides_private_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BASIN_PRIVATE_KEY", "deadbeef")
        config = Config(base_dir=tmp_path)

        assert "deadbeef" not in repr(config)
        assert "deadbeef" not in str(config.get_summary())


class TestUploadConfig:
    def test_validate_provider_protocol(self):
        upload = UploadConfig(provider_url="basin.example.com", vault="v", private_key="k")
        with pytest.raises(ValueError, match="protocol"):
            upload.validate()

    def test_valid(self):
        UploadConfig(vault="v", private_key="k").validate()


class TestExportFile:
    """Tests for the YAML export file."""

    def test_tables_and_overrides(self, tmp_path):
        path = tmp_path / "export.yml"
        path.write_text(
            "tables: [users, orders]\n"
            "type_overrides:\n"
            "  orders:\n"
            "    created_at: TIMESTAMP\n"
            "    paid: bool\n"
        )

        export_file = load_export_file(path)

        assert export_file.tables == ["users", "orders"]
        assert export_file.type_overrides == {
            "orders": {"created_at": PhysicalType.TIMESTAMP, "paid": PhysicalType.BOOL}
        }

    def test_empty_file(self, tmp_path):
        path = tmp_path / "export.yml"
        path.write_text("")

        export_file = load_export_file(path)
        assert export_file.tables is None
        assert export_file.type_overrides is None

    @pytest.mark.parametrize("content", [
        "tables: users\n",
        "- just\n- a list\n",
        "type_overrides:\n  orders: timestamp\n",
        "type_overrides:\n  orders:\n    created_at: decimal\n",
        "tables: [unclosed\n",
    ])
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "export.yml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            load_export_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_export_file(tmp_path / "nope.yml")
