"""Tests for the bigquery-pod CLI commands."""

from __future__ import annotations

import argparse
import json
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from bigquery_pod.core.errors import StartupError
from bigquery_pod.core.query import BigQuerySource
from bigquery_pod.core.schemas import ColumnSchema
from bigquery_pod.interfaces.cli import main as cli


@pytest.fixture
def fake_client(monkeypatch):
    """Replace client creation so no credentials are needed."""
    client = MagicMock()
    monkeypatch.setattr(cli, "create_client", MagicMock(return_value=client))
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "demo-project")
    monkeypatch.delenv("BIGQUERY_LOCATION", raising=False)
    return client


@pytest.fixture
def use_source(monkeypatch):
    """Make the CLI build the given fake source instead of a BigQuerySource."""

    def _use(source):
        monkeypatch.setattr(cli, "BigQuerySource", lambda client, timeout=None: source)

    return _use


class TestCmdServe:
    """Tests for cmd_serve."""

    def test_missing_socket_path(self, fake_client):
        args = argparse.Namespace(socket_path=None, config=None)
        assert cli.cmd_serve(args) == 2

    def test_missing_project(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        args = argparse.Namespace(socket_path=str(tmp_path / "pod.sock"), config=None)
        assert cli.cmd_serve(args) == 2

    def test_client_creation_failure(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "demo-project")
        monkeypatch.setattr(
            cli, "create_client", MagicMock(side_effect=StartupError("no credentials"))
        )
        args = argparse.Namespace(socket_path=str(tmp_path / "pod.sock"), config=None)
        assert cli.cmd_serve(args) == 2

    def test_serves_on_socket(self, fake_client, tmp_path):
        socket_path = str(tmp_path / "pod.sock")
        args = argparse.Namespace(socket_path=socket_path, config=None)

        with patch("bigquery_pod.interfaces.pod.server.run") as run:
            assert cli.cmd_serve(args) == 0

        run.assert_called_once()
        called_path, source, settings = run.call_args.args
        assert called_path == socket_path
        assert isinstance(source, BigQuerySource)
        assert source.client is fake_client
        assert settings.project == "demo-project"
        cli.create_client.assert_called_once_with("demo-project", location=None)
        fake_client.close.assert_called_once()

    def test_settings_file_is_used(self, fake_client, tmp_path):
        config = tmp_path / "pod.yaml"
        config.write_text("pod:\n  location: EU\n  query_timeout: 12\n")
        args = argparse.Namespace(socket_path=str(tmp_path / "pod.sock"), config=str(config))

        with patch("bigquery_pod.interfaces.pod.server.run") as run:
            assert cli.cmd_serve(args) == 0

        source = run.call_args.args[1]
        assert source.timeout == 12.0
        cli.create_client.assert_called_once_with("demo-project", location="EU")


class TestCmdQuery:
    """Tests for cmd_query."""

    def test_full_scan_prints_json(self, fake_client, use_source, sales_source, sales_json, capsys):
        use_source(sales_source)
        args = argparse.Namespace(sql="SELECT 1", page_size=None, token="", config=None)

        assert cli.cmd_query(args) == 0
        assert json.loads(capsys.readouterr().out) == sales_json
        fake_client.close.assert_called_once()

    def test_single_page(self, fake_client, use_source, sales_source, sales_json, capsys):
        use_source(sales_source)
        args = argparse.Namespace(sql="SELECT 1", page_size=2, token="page-2", config=None)

        assert cli.cmd_query(args) == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {"rows": sales_json[2:4], "token": "page-4"}

    def test_query_failure_returns_1(self, fake_client, use_source, make_source, capsys):
        use_source(make_source([ColumnSchema("shape", "GEOGRAPHY")], [("POINT(0 0)",)]))
        args = argparse.Namespace(sql="SELECT shape", page_size=None, token="", config=None)

        assert cli.cmd_query(args) == 1
        assert capsys.readouterr().out == ""

    def test_invalid_page_size_returns_1(self, fake_client, use_source, sales_source):
        use_source(sales_source)
        args = argparse.Namespace(sql="SELECT 1", page_size=0, token="", config=None)
        assert cli.cmd_query(args) == 1

    def test_main_dispatches_query(self, fake_client, use_source, sales_source, sales_json, capsys):
        use_source(sales_source)
        assert cli.main(["--errors-only", "query", "SELECT 1"]) == 0
        assert json.loads(capsys.readouterr().out) == sales_json


class TestCmdExport:
    """Tests for cmd_export."""

    def test_writes_csv_with_header(self, fake_client, use_source, sales_source, tmp_path):
        use_source(sales_source)
        output = tmp_path / "out" / "sales.csv"
        args = argparse.Namespace(sql="SELECT 1", output=str(output), config=None)

        assert cli.cmd_export(args) == 0

        df = pd.read_csv(output, dtype=str, keep_default_na=False)
        assert list(df.columns) == ["id", "region", "amount", "sold_on"]
        assert len(df) == 5
        # exact decimal text survives the round trip
        assert df.loc[1, "amount"] == "99999999999999999999.999999999"

    def test_empty_result_writes_header_only(self, fake_client, use_source, make_source, sales_schema, tmp_path):
        use_source(make_source(sales_schema, []))
        output = tmp_path / "empty.csv"
        args = argparse.Namespace(sql="SELECT 1", output=str(output), config=None)

        assert cli.cmd_export(args) == 0
        assert output.read_text().strip() == "id,region,amount,sold_on"

    def test_nested_values_written_as_json(self, fake_client, use_source, make_source, tmp_path):
        schema = [ColumnSchema("tags", "STRING", mode="REPEATED")]
        use_source(make_source(schema, [(["a", "b"],)]))
        output = tmp_path / "tags.csv"
        args = argparse.Namespace(sql="SELECT tags", output=str(output), config=None)

        assert cli.cmd_export(args) == 0
        df = pd.read_csv(output)
        assert json.loads(df.loc[0, "tags"]) == ["a", "b"]

    def test_export_respects_max_rows(self, fake_client, use_source, sales_source, tmp_path):
        config = tmp_path / "pod.yaml"
        config.write_text("pod:\n  max_rows: 3\n")
        use_source(sales_source)
        output = tmp_path / "capped.csv"
        args = argparse.Namespace(sql="SELECT 1", output=str(output), config=str(config))

        assert cli.cmd_export(args) == 1
        assert not output.exists()

    def test_export_reads_all_pages(self, fake_client, use_source, make_source, sales_schema, sales_rows, tmp_path):
        use_source(make_source(sales_schema, sales_rows, batch_size=2))
        output = tmp_path / "paged.csv"
        args = argparse.Namespace(sql="SELECT 1", output=str(output), config=None)

        assert cli.cmd_export(args) == 0
        assert len(pd.read_csv(output)) == 5

    def test_export_failure_writes_nothing(self, fake_client, use_source, make_source, sales_schema, sales_rows, tmp_path):
        use_source(make_source(sales_schema, sales_rows, fail_at=2))
        output = tmp_path / "partial.csv"
        args = argparse.Namespace(sql="SELECT 1", output=str(output), config=None)

        assert cli.cmd_export(args) == 1
        assert not output.exists()


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_serve_socket_argument():
    args = cli.build_parser().parse_args(["serve", "/tmp/pod.sock"])
    assert args.socket_path == "/tmp/pod.sock"
    assert args.func is cli.cmd_serve
