"""Tests for the CLI interface."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from fillproxy.cli import cli

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_JSONL = FIXTURES_DIR / "sample_fills.jsonl"

# 2023-11-14T22:00:00Z, the first hour of the sample dataset
HOUR = 1_699_999_200


def _output_lines(result) -> list[str]:
    return result.output.splitlines()


class TestCLI:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "fillproxy" in result.output

    def test_run_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "--dataset" in result.output
        assert "--capacity" in result.output

    def test_query_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["query", "--help"])
        assert result.exit_code == 0
        assert "QUERY_TYPE START_TIME END_TIME" in result.output


class TestRunCommand:
    def test_answers_queries_from_stdin(self):
        queries = "\n".join(
            [
                f"C {HOUR} {HOUR + 3600}",
                f"B {HOUR} {HOUR + 3600}",
                f"S {HOUR} {HOUR + 3600}",
                f"V {HOUR} {HOUR + 3600}",
                f"C {HOUR + 3599} {HOUR + 3600}",
            ]
        )
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--dataset", str(SAMPLE_JSONL)], input=queries + "\n")

        assert result.exit_code == 0, result.output
        lines = _output_lines(result)
        for expected in ("3", "2", "1", "4199.5500"):
            assert expected in lines

    def test_answers_queries_from_input_file(self, tmp_path):
        query_file = tmp_path / "queries.txt"
        query_file.write_text(f"V {HOUR + 3599} {HOUR + 7199}\n")

        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["run", "--dataset", str(SAMPLE_JSONL), "--input", str(query_file)],
        )

        assert result.exit_code == 0, result.output
        # 2001.00 * 0.25 + 2002.00 * 2
        assert "4504.2500" in _output_lines(result)

    def test_invalid_range_exits_nonzero(self):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["run", "--dataset", str(SAMPLE_JSONL)],
            input=f"C {HOUR} {HOUR + 7200}\n",
        )
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "at most 3600s" in result.output

    def test_malformed_line_exits_nonzero(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["run", "--dataset", str(SAMPLE_JSONL)], input="HELLO\n"
        )
        assert result.exit_code == 1
        assert "Invalid query format" in result.output

    def test_requires_a_source(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FILLPROXY_CONFIG", raising=False)
        runner = CliRunner()
        result = runner.invoke(cli, ["run"], input="C 0 10\n")
        assert result.exit_code != 0
        assert "No dataset" in result.output

    def test_dataset_and_url_are_exclusive(self):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["run", "--dataset", str(SAMPLE_JSONL), "--url", "http://fills.test"],
            input="C 0 10\n",
        )
        assert result.exit_code != 0
        assert "either --dataset or --url" in result.output

    def test_invalid_capacity(self):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["run", "--dataset", str(SAMPLE_JSONL), "--capacity", "0"],
            input="C 0 10\n",
        )
        assert result.exit_code != 0
        assert "must be >= 1" in result.output

    def test_unsupported_dataset_format(self, tmp_path):
        dataset = tmp_path / "fills.txt"
        dataset.write_text("")
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--dataset", str(dataset)], input="C 0 10\n")
        assert result.exit_code != 0
        assert "Unsupported dataset format" in result.output

    def test_source_from_config_file(self, tmp_path):
        config_file = tmp_path / "fillproxy.toml"
        config_file.write_text(f'[source]\npath = {json.dumps(str(SAMPLE_JSONL))}\n')

        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "run"],
            input=f"S {HOUR} {HOUR + 3600}\n",
        )

        assert result.exit_code == 0, result.output
        assert "1" in _output_lines(result)

    @patch("fillproxy.cli.HttpFillSource")
    def test_url_uses_http_source(self, mock_source_cls):
        mock_source = MagicMock()
        mock_source.fetch_hour.return_value = []
        mock_source_cls.return_value.__enter__ = MagicMock(return_value=mock_source)
        mock_source_cls.return_value.__exit__ = MagicMock(return_value=False)

        runner = CliRunner()
        result = runner.invoke(
            cli, ["run", "--url", "http://fills.test"], input=f"C {HOUR} {HOUR + 10}\n"
        )

        assert result.exit_code == 0, result.output
        assert "0" in _output_lines(result)
        mock_source_cls.assert_called_once_with("http://fills.test", timeout=30.0)
        mock_source.fetch_hour.assert_called_once_with(HOUR)


class TestQueryCommand:
    def test_single_query(self):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["query", "C", str(HOUR), str(HOUR + 3600), "--dataset", str(SAMPLE_JSONL)],
        )
        assert result.exit_code == 0, result.output
        assert "3" in _output_lines(result)

    def test_rejects_unknown_type(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["query", "X", "0", "10", "--dataset", str(SAMPLE_JSONL)]
        )
        assert result.exit_code != 0

    def test_rejects_negative_time(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["query", "C", "-5", "10", "--dataset", str(SAMPLE_JSONL)]
        )
        assert result.exit_code != 0

    def test_volume_of_zero_quantity_fill_is_plain(self, tmp_path):
        dataset = tmp_path / "fills.jsonl"
        dataset.write_text(
            json.dumps(
                {
                    "sequence_number": 1,
                    "time": HOUR + 10,
                    "direction": 1,
                    "price": "3412.50",
                    "quantity": "0.00000000",
                }
            )
            + "\n"
        )
        runner = CliRunner()
        result = runner.invoke(
            cli, ["query", "V", str(HOUR), str(HOUR + 3600), "--dataset", str(dataset)]
        )
        assert result.exit_code == 0, result.output
        assert "0.0000000000" in _output_lines(result)

    def test_unicode_digit_time_reported_as_error(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["run", "--dataset", str(SAMPLE_JSONL)], input="C ² 10\n"
        )
        assert result.exit_code == 1
        assert "non-negative integer" in result.output

    def test_invalid_range(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["query", "V", "100", "50", "--dataset", str(SAMPLE_JSONL)]
        )
        assert result.exit_code == 1
        assert "before start time" in result.output
