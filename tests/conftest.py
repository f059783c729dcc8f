"""Shared fixtures: fresh, explicitly injected collaborators for every test."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger

from correlate.codec.structured import StructuredCodec
from correlate.config import CodecSettings, ReferenceLoopHandling
from correlate.mapping.engine import Mapper
from correlate.reflection.cache import DescriptorCache


@pytest.fixture()
def cache() -> DescriptorCache:
    """Empty descriptor cache, isolated from the process-wide one."""
    return DescriptorCache()


@pytest.fixture()
def codec() -> StructuredCodec:
    """Codec with default settings, independent of the environment."""
    return StructuredCodec(
        CodecSettings(
            date_format=None,
            pretty_print=False,
            ignore_null_values=False,
            reference_loop_handling=ReferenceLoopHandling.ERROR,
        )
    )


@pytest.fixture()
def mapper(cache: DescriptorCache, codec: StructuredCodec) -> Mapper:
    return Mapper(cache, codec)


@pytest.fixture()
def warnings_logged() -> Iterator[list[str]]:
    """Collect loguru WARNING-and-above messages emitted during the test."""
    messages: list[str] = []
    sink_id = logger.add(lambda msg: messages.append(msg.record["message"]), level="WARNING")
    yield messages
    logger.remove(sink_id)
