"""Tests for the batchmdcs CLI."""

from unittest.mock import MagicMock

import pytest

from batchmdcs.cli.app import app, main
from batchmdcs.cli.formatters import print_job_status, print_pools_table


@pytest.fixture
def mock_cluster(monkeypatch):
    cluster = MagicMock()
    for module in ("pools", "jobs", "data"):
        monkeypatch.setattr(
            f"batchmdcs.cli.{module}.get_cluster",
            lambda env=None, batchfile=None: cluster,
        )
    return cluster


class TestCLIHelp:
    """Test CLI help messages and basic command structure."""

    def test_main_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            app(["--help"])
        assert exc_info.value.code == 0

        captured = capsys.readouterr()
        for name in ("credentials", "pools", "jobs", "data"):
            assert name in captured.out

    def test_version(self):
        with pytest.raises(SystemExit) as exc_info:
            app(["--version"])
        assert exc_info.value.code == 0

    @pytest.mark.parametrize(
        "subcommand,expected",
        [
            ("pools", ["list", "create", "resize", "delete"]),
            ("jobs", ["submit", "status", "wait", "delete"]),
            ("data", ["stage", "fetch", "reclaim"]),
            ("credentials", ["store"]),
        ],
    )
    def test_subcommand_help(self, capsys, subcommand, expected):
        with pytest.raises(SystemExit) as exc_info:
            app([subcommand, "--help"])
        assert exc_info.value.code == 0

        captured = capsys.readouterr()
        for name in expected:
            assert name in captured.out

    def test_pools_list_help_shows_options(self, capsys):
        with pytest.raises(SystemExit):
            app(["pools", "list", "--help"])

        captured = capsys.readouterr()
        assert "--env" in captured.out
        assert "--batchfile" in captured.out


class TestFormatters:
    def test_print_pools_table_empty(self, capsys):
        print_pools_table([])
        assert "No pools" in capsys.readouterr().out

    def test_print_pools_table(self, capsys):
        print_pools_table(
            [
                {
                    "id": "pool1",
                    "vm_size": "STANDARD_D2_V2",
                    "state": "active",
                    "allocation_state": "steady",
                    "current_dedicated_nodes": 2,
                    "target_dedicated_nodes": 4,
                }
            ]
        )
        captured = capsys.readouterr()
        assert "pool1" in captured.out
        assert "2/4" in captured.out

    def test_print_job_status(self, capsys):
        print_job_status("alice-1", ["finished", "All tasks completed."])
        captured = capsys.readouterr()
        assert "alice-1" in captured.out
        assert "finished" in captured.out
        assert "All tasks completed." in captured.out


class TestCommands:
    def test_pools_create(self, mock_cluster):
        with pytest.raises(SystemExit) as exc_info:
            app(["pools", "create", "pool1", "STANDARD_D2_V2", "3", "--inter-node-communication"])
        assert exc_info.value.code == 0

        mock_cluster.create_pool.assert_called_once_with(
            "pool1", "STANDARD_D2_V2", 3, True, 1
        )

    def test_pools_list(self, mock_cluster, capsys):
        mock_cluster.list_pools.return_value = [{"id": "pool1", "state": "active"}]

        with pytest.raises(SystemExit) as exc_info:
            app(["pools", "list"])
        assert exc_info.value.code == 0
        assert "pool1" in capsys.readouterr().out

    def test_jobs_submit_prints_batch_job_id(self, mock_cluster, capsys):
        mock_cluster.submit_job.return_value = "alice-1-20161103-140509"

        with pytest.raises(SystemExit) as exc_info:
            app(
                [
                    "jobs",
                    "submit",
                    "pool1",
                    "alice",
                    "1",
                    "2",
                    "Job1",
                    "--matlab-root",
                    "C:\\MATLAB",
                    "--matlab-exe",
                    "C:\\MATLAB\\bin\\worker.bat",
                    "--task-location",
                    "Job1/Task1",
                    "--task-location",
                    "Job1/Task2",
                    "--license-number",
                    "40000",
                ]
            )
        assert exc_info.value.code == 0

        assert "alice-1-20161103-140509" in capsys.readouterr().out
        args = mock_cluster.submit_job.call_args.args
        assert args[0:4] == ("pool1", "alice", "1", 2)
        assert args[6] == "40000"
        assert args[8] is False
        assert list(args[9]) == ["Job1/Task1", "Job1/Task2"]

    def test_jobs_status(self, mock_cluster, capsys):
        mock_cluster.poll_job_status.return_value = ["running"]

        with pytest.raises(SystemExit) as exc_info:
            app(["jobs", "status", "alice-1"])
        assert exc_info.value.code == 0

        mock_cluster.poll_job_status.assert_called_once_with("alice-1")
        assert "running" in capsys.readouterr().out

    def test_jobs_delete(self, mock_cluster):
        with pytest.raises(SystemExit):
            app(["jobs", "delete", "alice-1", "alice", "Job1"])

        mock_cluster.delete_job.assert_called_once_with("alice-1", "alice", "Job1")

    def test_data_stage(self, mock_cluster):
        with pytest.raises(SystemExit):
            app(["data", "stage", "alice", "/tmp/jobs", "Job1", "-e", "dev"])

        mock_cluster.stage_job_data.assert_called_once_with("alice", "/tmp/jobs", "Job1")

    def test_credentials_store(self, monkeypatch):
        stored = {}
        monkeypatch.setattr(
            "batchmdcs.cluster.BatchCluster.store_credential",
            staticmethod(lambda target, key: stored.__setitem__(target, key)),
        )

        with pytest.raises(SystemExit):
            app(["credentials", "store", "mybatch", "--key", "secret"])

        assert stored == {"mybatch": "secret"}


class TestErrorHandling:
    def test_missing_batchfile_error(self, tmp_path, capsys, monkeypatch):
        monkeypatch.delenv("BATCHFILE", raising=False)
        empty = tmp_path / "empty"
        empty.mkdir()

        with pytest.raises(SystemExit) as exc_info:
            main_with_args(["pools", "list", "--batchfile", str(empty)])

        assert exc_info.value.code == 1
        assert "Batchfile" in capsys.readouterr().err

    def test_credential_error(self, mock_cluster, capsys):
        from batchmdcs.errors import CredentialError

        mock_cluster.list_pools.side_effect = CredentialError("no key for mybatch")

        with pytest.raises(SystemExit) as exc_info:
            main_with_args(["pools", "list"])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "no key for mybatch" in err
        assert "credentials store" in err


def main_with_args(args):
    """Helper to run main() with specific arguments."""
    import sys

    original_argv = sys.argv
    try:
        sys.argv = ["batchmdcs"] + args
        main()
    finally:
        sys.argv = original_argv
