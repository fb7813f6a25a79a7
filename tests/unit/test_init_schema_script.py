"""Unit tests for scripts/init_schema.py."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from database.connection import QueryResult
from database.schema import SchemaRegistry, UnknownTableGroupError
from scripts.init_schema import main, run
from shared.startup_validator import StartupValidationError


def mock_data_access(healthy=True, existing_tables=()):
    data = MagicMock()
    data.check_health = AsyncMock(
        return_value={"ok": True, "database": "connected"}
        if healthy
        else {"ok": False, "database": "unavailable", "details": "refused"}
    )
    data.schema.ensure = AsyncMock()
    data.schema.ensure_all = AsyncMock()
    data.schema.groups = ["users", "movies"]
    data.schema.is_ready = MagicMock(return_value=True)
    data.schema.tables_for = SchemaRegistry(MagicMock()).tables_for
    data.close = AsyncMock()

    async def execute(statement, params=None):
        return QueryResult(rows=[{"present": params["table_name"] in existing_tables}], row_count=1)

    data.execute = AsyncMock(side_effect=execute)
    return data


@pytest.fixture
def valid_config():
    with patch("scripts.init_schema.validate_startup_config", new=AsyncMock(return_value={})):
        yield


class TestRun:
    @pytest.mark.asyncio
    async def test_bootstraps_all_groups_by_default(self, valid_config):
        data = mock_data_access()
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run([], check=False) is True

        data.schema.ensure_all.assert_awaited_once()
        data.schema.ensure.assert_not_called()
        data.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bootstraps_requested_groups(self, valid_config):
        data = mock_data_access()
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run(["bookings", "staff_tasks"], check=False) is True

        assert [c.args[0] for c in data.schema.ensure.await_args_list] == ["bookings", "staff_tasks"]
        data.schema.ensure_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_unhealthy_database(self, valid_config):
        data = mock_data_access(healthy=False)
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run([], check=False) is False

        data.schema.ensure_all.assert_not_called()
        data.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ddl_failure(self, valid_config):
        data = mock_data_access()
        data.schema.ensure_all.side_effect = OperationalError("CREATE", {}, ConnectionResetError())
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run([], check=False) is False

    @pytest.mark.asyncio
    async def test_invalid_config_blocks(self):
        with patch(
            "scripts.init_schema.validate_startup_config",
            new=AsyncMock(side_effect=StartupValidationError("bad url")),
        ), patch("scripts.init_schema.create_data_access") as mock_create:
            assert await run([], check=False) is False

        mock_create.assert_not_called()

    @pytest.mark.asyncio
    async def test_check_covers_only_requested_groups(self, valid_config):
        data = mock_data_access(existing_tables=("users",))
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run(["users"], check=True) is True

        checked = [c.args[1]["table_name"] for c in data.execute.await_args_list]
        assert checked == ["users"]

    @pytest.mark.asyncio
    async def test_check_includes_group_dependencies(self, valid_config):
        data = mock_data_access(existing_tables=("theaters", "screens"))
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run(["screens"], check=True) is True

        checked = [c.args[1]["table_name"] for c in data.execute.await_args_list]
        assert checked == ["theaters", "screens"]

    @pytest.mark.asyncio
    async def test_check_fails_on_missing_table(self, valid_config):
        data = mock_data_access(existing_tables=("users", "movies", "theaters", "screens"))
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run(["bookings"], check=True) is False

    @pytest.mark.asyncio
    async def test_check_without_groups_covers_every_table(self, valid_config):
        data = mock_data_access(existing_tables=("users",))
        with patch("scripts.init_schema.create_data_access", return_value=data):
            assert await run([], check=True) is False

        assert data.execute.await_count == 14


class TestMain:
    @pytest.mark.asyncio
    async def test_exit_codes(self):
        with patch("scripts.init_schema.configure_logging"), \
             patch("scripts.init_schema.run", new=AsyncMock(return_value=True)) as mock_run:
            assert await main(["--group", "users", "--check"]) == 0
            mock_run.assert_awaited_once_with(["users"], True)

        with patch("scripts.init_schema.configure_logging"), \
             patch("scripts.init_schema.run", new=AsyncMock(return_value=False)):
            assert await main([]) == 1

    @pytest.mark.asyncio
    async def test_unknown_group_message(self, caplog):
        data = mock_data_access()
        data.schema.ensure.side_effect = UnknownTableGroupError("Unknown table group: 'popcorn'")
        with patch("scripts.init_schema.configure_logging"), \
             patch("scripts.init_schema.validate_startup_config", new=AsyncMock(return_value={})), \
             patch("scripts.init_schema.create_data_access", return_value=data), \
             caplog.at_level(logging.ERROR):
            assert await main(["--group", "popcorn"]) == 2

        assert "Invalid --group: Unknown table group: 'popcorn'" in caplog.text
