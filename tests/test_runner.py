"""Tests for run dispatch and the command line."""

import pytest
from azure.core.exceptions import ServiceRequestError

from dataseeder import cli, runner


@pytest.fixture
def patched_gateway(gateway, monkeypatch):
    monkeypatch.setattr(runner, "create_cosmos_gateway", lambda params: gateway)
    return gateway


class TestRunDataSeeder:
    @pytest.mark.asyncio
    async def test_invalid_parameters(self):
        result = await runner.run_data_seeder({"target_type": "cosmos"})
        assert result["status"] == "error"
        assert "Missing required parameters" in result["error"]

    @pytest.mark.asyncio
    async def test_seed_from_files(self, patched_gateway, tmp_path, seed_file):
        seed_file("1.json", {"id": "1", "db": "shop"}, {"n": 1}, tmp_path / "shop")

        result = await runner.run_data_seeder({"target_type": "cosmos", "path": str(tmp_path)})

        assert result["status"] == "success"
        assert result["databases"] == {"shop": {"shop": {"successful": 1, "failed": 0, "total": 1}}}
        assert patched_gateway.closed is True

    @pytest.mark.asyncio
    async def test_seed_with_failures(self, patched_gateway, tmp_path, seed_file):
        seed_file("1.json", {"db": "shop"}, {}, tmp_path / "shop")

        result = await runner.run_data_seeder({"target_type": "cosmos", "path": str(tmp_path)})

        assert result["status"] == "completed_with_errors"

    @pytest.mark.asyncio
    async def test_seed_missing_directory(self, patched_gateway, tmp_path):
        result = await runner.run_data_seeder({"target_type": "cosmos", "path": str(tmp_path / "nope")})
        assert result["status"] == "error"
        assert "Directory not found" in result["error"]

    @pytest.mark.asyncio
    async def test_export(self, patched_gateway, tmp_path):
        patched_gateway.add_container("shop", "orders", [{"id": "1", "_ts": 1}])

        result = await runner.run_data_seeder({
            "target_type": "cosmos", "source_type": "cosmos",
            "path": str(tmp_path), "database": "shop",
        })

        assert result["status"] == "success"
        assert (tmp_path / "shop" / "orders" / "1.json").exists()

    @pytest.mark.asyncio
    async def test_export_without_database(self, patched_gateway, tmp_path):
        result = await runner.run_data_seeder({
            "target_type": "cosmos", "source_type": "cosmos", "path": str(tmp_path)})
        assert result["status"] == "error"

    @pytest.mark.asyncio
    async def test_servicebus_without_message_folders(self, monkeypatch, tmp_path):
        class _Client:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc_info):
                pass

        monkeypatch.setattr(runner, "create_servicebus_client", lambda params: _Client())

        result = await runner.run_data_seeder({"target_type": "servicebus", "path": str(tmp_path)})

        assert result["status"] == "error"
        assert "No queue or topic directories found" in result["error"]

    @pytest.mark.asyncio
    async def test_seed_container_failure_is_reported(self, patched_gateway, tmp_path, seed_file):
        seed_file("1.json", {"id": "1", "db": "alpha"}, {}, tmp_path / "alpha")
        seed_file("1.json", {"id": "1", "db": "beta"}, {}, tmp_path / "beta")
        patched_gateway.container_errors[("alpha", "alpha")] = ServiceRequestError("Connection reset by peer")

        result = await runner.run_data_seeder({"target_type": "cosmos", "path": str(tmp_path)})

        assert result["status"] == "completed_with_errors"
        assert result["databases"]["beta"] == {"beta": {"successful": 1, "failed": 0, "total": 1}}

    @pytest.mark.asyncio
    async def test_redis_not_implemented(self, tmp_path):
        result = await runner.run_data_seeder({"target_type": "redis", "path": str(tmp_path)})
        assert result == {"status": "error", "error": "Redis seeding not implemented yet."}


class TestCli:
    def test_missing_required_arguments(self):
        assert cli.main(["--path", "./seed"]) == 1

    def test_help(self, capsys):
        assert cli.main(["--help"]) == 0
        assert "--targetType" in capsys.readouterr().out

    def test_arguments_are_mapped_to_parameters(self, monkeypatch):
        received = {}

        async def _fake_run(params):
            received.update(params)
            return {"status": "success"}

        monkeypatch.setattr(cli, "run_data_seeder", _fake_run)

        exit_code = cli.main([
            "-t", "cosmos", "-s", "cosmos", "-p", "./out", "-d", "shop", "-c", "orders",
            "--pageSize", "50", "--maxRU", "200", "--forceUpdate",
        ])

        assert exit_code == 0
        assert received["target_type"] == "cosmos"
        assert received["source_type"] == "cosmos"
        assert received["path"] == "./out"
        assert received["database"] == "shop"
        assert received["container"] == "orders"
        assert received["page_size"] == 50
        assert received["max_ru"] == 200
        assert received["force_update"] is True
        assert "verbose" not in received

    def test_error_result_exits_with_one(self, tmp_path):
        assert cli.main(["-t", "redis", "-p", str(tmp_path)]) == 1
