"""
Unit tests for the offline CLI commands.
"""
import json

import pytest
from click.testing import CliRunner

from main import cli


@pytest.mark.unit
class TestRecalcCommand:

    def test_usd_line(self):
        result = CliRunner().invoke(cli, [
            "recalc", "--rate", "12500",
            "purchase_unit_quantity=10", "price_per_unit_currency=2.00",
        ])
        assert result.exit_code == 0, result.output
        fields = json.loads(result.output)
        assert fields["quantity"] == "10.00"
        assert fields["total_price_in_uz"] == "250000.00"

    def test_base_currency_line(self):
        result = CliRunner().invoke(cli, [
            "recalc", "--base-currency", "--factor", "2",
            "purchase_unit_quantity=3", "price_per_unit_uz=5000",
        ])
        assert result.exit_code == 0, result.output
        fields = json.loads(result.output)
        assert fields["total_price_in_uz"] == "15000.00"
        assert fields["base_unit_in_uzs"] == "2500.00"

    def test_bad_edit(self):
        result = CliRunner().invoke(cli, ["recalc", "nonsense"])
        assert result.exit_code == 1


@pytest.mark.unit
class TestDraftsCommand:

    def test_show_missing_draft(self, temp_dir, monkeypatch):
        monkeypatch.setenv("DRAFT_DB_PATH", str(temp_dir / "drafts.db"))
        monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
        result = CliRunner().invoke(cli, ["drafts", "show", "new"])
        assert result.exit_code == 0
        assert "No draft for entry new" in result.output
