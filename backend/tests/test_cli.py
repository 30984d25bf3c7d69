"""
Tests for the trazabilidad CLI.
"""

from contextlib import contextmanager

import pytest
from typer.testing import CliRunner

from tests.conftest import PRODUCTION_DAY, engine, supplier_lines
from trace_api import cli

runner = CliRunner()


@pytest.fixture
def cli_db(seeded, monkeypatch):
    """Point the CLI at the test database."""
    @contextmanager
    def fake_db_context():
        yield seeded

    monkeypatch.setattr(cli, "get_db_context", fake_db_context)
    monkeypatch.setattr(cli, "engine", engine)
    return seeded


class TestCli:
    """CLI commands against the in-memory database."""

    def test_init_db_is_idempotent(self, cli_db):
        result = runner.invoke(cli.app, ["init-db"])
        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output

    def test_lots_empty(self, cli_db):
        result = runner.invoke(cli.app, ["lots"])
        assert result.exit_code == 0
        assert "No lots found" in result.output

    def test_lots_table(self, cli_db, lot_service, bread_recipe):
        lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        result = runner.invoke(cli.app, ["lots", "--recipe", str(bread_recipe.id)])

        assert result.exit_code == 0, result.output
        assert "2024-03-01" in result.output

    def test_recipes_table(self, cli_db, bread_recipe):
        result = runner.invoke(cli.app, ["recipes", "--shape", "combine"])
        assert result.exit_code == 0, result.output
        assert "combine" in result.output

    def test_label_preview(self, cli_db, lot_service, bread_recipe):
        lot = lot_service.create_lot(bread_recipe.id, PRODUCTION_DAY, 10.0, supplier_lines(bread_recipe))

        result = runner.invoke(cli.app, ["label", str(lot.id), "--today", "2024-03-01"])

        assert result.exit_code == 0, result.output
        assert "Harina*" in result.output
        assert "Gluten" in result.output

    def test_label_unknown_lot(self, cli_db):
        result = runner.invoke(cli.app, ["label", "999"])
        assert result.exit_code == 1
        assert "no encontrado" in result.output
