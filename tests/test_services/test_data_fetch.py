"""Tests for profile-level data fetching."""

from datetime import timedelta

import pytest

from reporter.core.datetime_utils import utc_now
from reporter.core.exceptions import ConfigurationError
from reporter.services.data_fetch import (
    build_default_criteria,
    check_profile_connection,
    connection_for_profile,
    fetch_profile_parameters,
    fetch_profile_rows,
    fetch_profile_schema,
)

pytestmark = pytest.mark.asyncio


class TestBuildDefaultCriteria:
    """Tests for build_default_criteria."""

    def test_lookback_window(self):
        now = utc_now()
        criteria = build_default_criteria(["M1"], now=now)

        assert criteria.date_to == now
        assert criteria.date_from == now - timedelta(hours=24)
        assert criteria.entity_ids == ["M1"]
        assert criteria.parameter_ids == []

    def test_falls_back_to_configured_entities(self):
        criteria = build_default_criteria(None, report_type="Production")

        assert criteria.entity_ids == ["Machine-01", "Machine-02"]
        assert criteria.report_type == "Production"


class TestConnectionForProfile:
    """Tests for connection_for_profile."""

    async def test_missing_server(self, user_factory, profile_factory):
        profile = await profile_factory(await user_factory(), server=None)

        with pytest.raises(ConfigurationError) as exc_info:
            connection_for_profile(profile)

        assert "server" in str(exc_info.value)

    async def test_bare_host_requires_database(self, user_factory, profile_factory):
        profile = await profile_factory(await user_factory(), server="scada01", database_name=None)

        with pytest.raises(ConfigurationError) as exc_info:
            connection_for_profile(profile)

        assert "database name" in str(exc_info.value)

    async def test_connection_string_needs_no_database(self, user_factory, profile_factory):
        profile = await profile_factory(await user_factory(), server="Server=s;Database=d;")

        config = connection_for_profile(profile)

        odbc = config.url.query["odbc_connect"]
        assert "User ID=report_reader" in odbc
        assert "Password=s3cret" in odbc


class TestFetchProfileRows:
    """Tests for fetch_profile_rows through a stand-in data source."""

    async def test_fetches_rows(self, user_factory, profile_factory, stand_in_data_source):
        profile = await profile_factory(await user_factory())

        rows = await fetch_profile_rows(profile, build_default_criteria(["M2"]))

        assert len(rows) == 1
        assert rows[0].machine == "M2"

    async def test_parameters(self, user_factory, profile_factory, stand_in_data_source):
        profile = await profile_factory(await user_factory())

        assert await fetch_profile_parameters(profile, ["Machine-01"]) == ["Speed"]

    async def test_schema(self, user_factory, profile_factory, stand_in_data_source):
        profile = await profile_factory(await user_factory())

        schema = await fetch_profile_schema(profile)

        assert schema == {"TagLog": ["TimeStamp", "ServerName", "TagName", "TagValue"]}


class TestCheckProfileConnection:
    """Tests for check_profile_connection."""

    async def test_reports_configuration_problem(self, user_factory, profile_factory):
        profile = await profile_factory(await user_factory(), server=None)

        check = await check_profile_connection(profile)

        assert check.success is False
        assert "not configured" in check.message
