"""Tests for the BikePath CLI."""

from click.testing import CliRunner

from bikepath.cli import cli


class TestCLI:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "BikePath" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_no_subcommand_shows_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "routes" in result.output

    def test_score(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["score", "100", "100", "0", "1"])
        assert result.exit_code == 0
        assert result.output.strip() == "25.00"

    def test_score_clamped(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["score", "100", "100", "2"])
        assert result.output.strip() == "0.00"

    def test_score_accepts_negative_arguments(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["score", "100", "100", "-1"])
        assert result.exit_code == 0
        assert result.output.strip() == "100.00"

        result = runner.invoke(cli, ["score", "100", "100", "0", "-0.5"])
        assert result.exit_code == 0
        assert result.output.strip() == "100.00"

    def test_routes(self, store, network):
        runner = CliRunner()
        result = runner.invoke(cli, ["routes", "Via Roma", "Corso Como", "--db", str(store.db_path)])
        assert result.exit_code == 0
        assert "Roma to Como" in result.output
        assert "[exact]" in result.output

    def test_routes_same_street(self, store):
        runner = CliRunner()
        result = runner.invoke(cli, ["routes", "Via Roma", "Via Roma", "--db", str(store.db_path)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_aggregate(self, store, network):
        store.add_report("u", "sufficient", street_id=network["dante"].id)
        runner = CliRunner()
        result = runner.invoke(cli, ["aggregate", network["dante"].id, "--db", str(store.db_path)])
        assert result.exit_code == 0
        assert "sufficient" in result.output

    def test_rescore(self, store, network):
        runner = CliRunner()
        result = runner.invoke(cli, ["rescore", network["path"].id, "--db", str(store.db_path)])
        assert result.exit_code == 0
        assert "Score:" in result.output

    def test_rescore_unknown_path(self, store):
        runner = CliRunner()
        result = runner.invoke(cli, ["rescore", "nope", "--db", str(store.db_path)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_serve_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["serve", "--help"])
        assert result.exit_code == 0
        assert "--port" in result.output
