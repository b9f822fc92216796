"""Tests for the bounded-retry fetch helper."""

import httpx
import pytest

from dramadl import fetching
from dramadl.config import RetryPolicy
from dramadl.fetching import build_client, fetch_with_retry

from .conftest import connect_error

URL = "https://cdn.example.com/master.m3u8"


@pytest.mark.asyncio
async def test_retries_until_success(upstream):
    upstream.add(URL, connect_error(), httpx.Response(503), httpx.Response(200, text="#EXTM3U"))

    async with build_client(5, transport=upstream.transport) as client:
        resp = await fetch_with_retry(client, URL, attempts=5, backoff_seconds=0)

    assert resp is not None and resp.text == "#EXTM3U"
    assert upstream.hits(URL) == 3


@pytest.mark.asyncio
async def test_gives_up_after_attempts(upstream):
    upstream.add(URL, httpx.Response(403))

    async with build_client(5, transport=upstream.transport) as client:
        resp = await fetch_with_retry(client, URL, attempts=2, backoff_seconds=0)

    assert resp is None
    assert upstream.hits(URL) == 2


@pytest.mark.asyncio
async def test_linear_backoff(upstream, monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(fetching.asyncio, "sleep", fake_sleep)
    upstream.add(URL, connect_error())

    async with build_client(5, transport=upstream.transport) as client:
        await fetch_with_retry(client, URL, attempts=4, backoff_seconds=1.0)

    assert sleeps == [1.0, 2.0, 3.0]


def test_retry_policy_from_env(monkeypatch):
    monkeypatch.setenv("MASTER_MANIFEST_ATTEMPTS", "7")
    monkeypatch.setenv("RETRY_BACKOFF_SECONDS", "0.5")

    policy = RetryPolicy.from_env()

    assert policy.master_attempts == 7
    assert policy.backoff_seconds == 0.5
    assert policy.metadata_attempts == 2
