"""Tests for the command line entry point."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from warehouse.__main__ import build_parser, main
from warehouse.exceptions import MalformedReceiptError
from warehouse.models import InAppPurchaseRecord, Receipt, ValidationResult

SHIPPED_CONFIG = str(Path(__file__).resolve().parents[2] / "config" / "warehouse.yaml")


@pytest.fixture
def receipt_file(tmp_path):
    path = tmp_path / "receipt"
    path.write_bytes(b"raw receipt")
    return str(path)


@pytest.fixture
def mock_validator():
    with patch("warehouse.services.receipt_validator.ReceiptValidator") as validator_class:
        validator = validator_class.return_value
        validator.validate = AsyncMock()
        validator.aclose = AsyncMock()
        yield validator


class TestParser:
    """Test argument parsing."""

    def test_emulator_defaults(self, monkeypatch):
        for name in ("HOST", "PORT", "RELOAD"):
            monkeypatch.delenv(name, raising=False)

        args = build_parser().parse_args(["emulator"])

        assert args.command == "emulator"
        assert args.host == "127.0.0.1"
        assert args.port == 8080
        assert args.reload is False

    def test_verify_arguments(self):
        args = build_parser().parse_args(
            ["--config", "other.yaml", "verify", "receipt.bin", "--product-id", "com.app.pro"]
        )

        assert args.config == "other.yaml"
        assert args.receipt == "receipt.bin"
        assert args.product_id == "com.app.pro"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestVerifyCommand:
    """Test one-off receipt validation."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self):
        with patch("warehouse.logging_config.configure_logging"):
            yield

    def test_valid_receipt(self, receipt_file, mock_validator, capsys):
        """Valid receipt prints the decoded receipt and exits 0."""
        mock_validator.validate.return_value = ValidationResult.success(
            Receipt(
                bundle_id="com.example.app",
                in_app_purchases=(InAppPurchaseRecord(product_id="com.app.pro"),),
            )
        )

        exit_code = main(
            ["--config", SHIPPED_CONFIG, "verify", receipt_file, "--product-id", "com.app.pro"]
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["status"] == "valid"
        assert output["receipt"]["in_app_purchases"][0]["product_id"] == "com.app.pro"
        mock_validator.validate.assert_awaited_once_with(b"raw receipt", product_id="com.app.pro")
        mock_validator.aclose.assert_awaited_once()

    def test_invalid_receipt(self, receipt_file, mock_validator, capsys):
        mock_validator.validate.return_value = ValidationResult.failure(MalformedReceiptError())

        exit_code = main(["--config", SHIPPED_CONFIG, "verify", receipt_file])

        assert exit_code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["status"] == "invalid"
        assert output["error_type"] == "MalformedReceiptError"
        assert output["error_code"] == 21002

    def test_missing_receipt_file(self, tmp_path, capsys):
        exit_code = main(["--config", SHIPPED_CONFIG, "verify", str(tmp_path / "missing")])

        assert exit_code == 2
        assert "not found" in capsys.readouterr().err

    def test_missing_config(self, receipt_file, tmp_path, capsys):
        exit_code = main(["--config", str(tmp_path / "missing.yaml"), "verify", receipt_file])

        assert exit_code == 2
        assert "Configuration file not found" in capsys.readouterr().err


class TestEmulatorCommand:
    """Test launching the emulator."""

    def test_runs_uvicorn_factory(self, monkeypatch):
        for name in ("LOG_LEVEL", "LOG_FORMAT", "WAREHOUSE_CONFIG"):
            monkeypatch.delenv(name, raising=False)
        with patch("warehouse.__main__.uvicorn.run") as mock_run:
            exit_code = main(
                ["--log-format", "json", "emulator", "--host", "0.0.0.0", "--port", "9000"]
            )

        assert exit_code == 0
        mock_run.assert_called_once()
        assert mock_run.call_args.args == ("warehouse.emulator.main:create_app_from_env",)
        assert mock_run.call_args.kwargs["factory"] is True
        assert mock_run.call_args.kwargs["port"] == 9000
