"""Tests for populating shapes from value-getter callbacks."""

import asyncio
from typing import Annotated

import pytest
from pydantic import BaseModel

from correlate.errors import Cancelled, ValidationError
from correlate.mapping.engine import map_with_value_getter, map_with_value_getter_async
from correlate.metadata.tags import FromField, FromKey, ToKey

STORE = {"APP_HOST": "example.org", "APP_PORT": "8080", "APP_DEBUG": "true"}


class AppSettings(BaseModel):
    host: Annotated[str, FromKey("APP_HOST")] = "localhost"
    port: Annotated[int, FromKey("APP_PORT")] = 0
    debug: Annotated[bool, FromKey("APP_DEBUG")] = False
    name: str = "app"


class TokenSettings(BaseModel):
    token: Annotated[str, FromKey("TOKEN", allow_empty=False)] = ""


def from_store(tag, kind, current):
    return STORE.get(tag.name)


class TestSync:
    def test_tagged_fields_populated(self, mapper):
        settings = mapper.map_with_value_getter(AppSettings, from_store)
        assert settings.host == "example.org"
        assert settings.port == 8080
        assert settings.debug is True

    def test_untagged_field_keeps_default(self, mapper):
        assert mapper.map_with_value_getter(AppSettings, from_store).name == "app"

    def test_callback_arguments_in_declared_order(self, mapper):
        calls = []

        def record(tag, kind, current):
            calls.append((tag, kind, current))
            return None

        mapper.map_with_value_getter(AppSettings, record, set_after_callback=False)
        assert calls == [
            (FromKey("APP_HOST"), str, "localhost"),
            (FromKey("APP_PORT"), int, 0),
            (FromKey("APP_DEBUG"), bool, False),
        ]

    def test_without_assignment(self, mapper):
        settings = mapper.map_with_value_getter(AppSettings, from_store, set_after_callback=False)
        assert settings.host == "localhost"
        assert settings.port == 0

    def test_field_tag_type_matches_key_tags(self, mapper):
        settings = mapper.map_with_value_getter(AppSettings, from_store, FromField)
        assert settings.port == 8080

    def test_other_tag_type_visits_nothing(self, mapper):
        calls = []
        settings = mapper.map_with_value_getter(
            AppSettings, lambda tag, kind, current: calls.append(tag), ToKey
        )
        assert calls == []
        assert settings.host == "localhost"

    def test_callback_error_propagates(self, mapper):
        def broken(tag, kind, current):
            raise KeyError(tag.name)

        with pytest.raises(KeyError):
            mapper.map_with_value_getter(AppSettings, broken)

    def test_allow_empty_enforced(self, mapper):
        with pytest.raises(ValidationError) as exc_info:
            mapper.map_with_value_getter(TokenSettings, from_store)
        assert exc_info.value.path == "token"

    def test_module_level_function(self):
        assert map_with_value_getter(AppSettings, from_store).port == 8080


class TestAsync:
    @pytest.mark.asyncio
    async def test_tagged_fields_populated(self, mapper):
        async def fetch(tag, kind, current):
            await asyncio.sleep(0)
            return STORE.get(tag.name)

        settings = await mapper.map_with_value_getter_async(AppSettings, fetch)
        assert settings.host == "example.org"
        assert settings.port == 8080
        assert settings.debug is True

    @pytest.mark.asyncio
    async def test_callbacks_never_overlap(self, mapper):
        active = 0
        max_active = 0

        async def fetch(tag, kind, current):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.001)
            active -= 1
            return STORE.get(tag.name)

        await mapper.map_with_value_getter_async(AppSettings, fetch)
        assert max_active == 1

    @pytest.mark.asyncio
    async def test_cancel_during_callback(self, mapper):
        cancel = asyncio.Event()
        seen = []

        async def fetch(tag, kind, current):
            seen.append(tag.name)
            if tag.name == "APP_PORT":
                cancel.set()
            return STORE.get(tag.name)

        with pytest.raises(Cancelled):
            await mapper.map_with_value_getter_async(AppSettings, fetch, cancel_event=cancel)
        assert seen == ["APP_HOST", "APP_PORT"]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, mapper):
        cancel = asyncio.Event()
        cancel.set()
        seen = []

        async def fetch(tag, kind, current):
            seen.append(tag.name)
            return None

        with pytest.raises(Cancelled):
            await mapper.map_with_value_getter_async(AppSettings, fetch, cancel_event=cancel)
        assert seen == []

    @pytest.mark.asyncio
    async def test_callback_error_propagates(self, mapper):
        async def broken(tag, kind, current):
            raise RuntimeError("store unavailable")

        with pytest.raises(RuntimeError, match="store unavailable"):
            await mapper.map_with_value_getter_async(AppSettings, broken)

    @pytest.mark.asyncio
    async def test_module_level_function(self):
        async def fetch(tag, kind, current):
            return STORE.get(tag.name)

        settings = await map_with_value_getter_async(AppSettings, fetch)
        assert settings.debug is True
