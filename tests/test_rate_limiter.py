import asyncio

from starlette.requests import Request

from meetsync.rate_limiter import (
    check_guest_request_rate_limit,
    check_rate_limit,
    fingerprint_client,
    get_client_ip,
    get_daily_salt,
)


def build_request(headers=None, client=("10.0.0.1", 1234)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


async def test_quota_counts_down_then_refuses(redis_client):
    results = [
        await check_rate_limit(redis_client, "guest_request", "fp", 60000, 3) for _ in range(4)
    ]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert 0 < results[-1].retry_after <= 60


async def test_window_expires(redis_client):
    assert (await check_rate_limit(redis_client, "a", "fp", 1000, 1)).allowed
    assert not (await check_rate_limit(redis_client, "a", "fp", 1000, 1)).allowed
    await asyncio.sleep(1.1)
    assert (await check_rate_limit(redis_client, "a", "fp", 1000, 1)).allowed


async def test_windows_are_per_action_and_fingerprint(redis_client):
    assert (await check_rate_limit(redis_client, "a", "one", 60000, 1)).allowed
    assert (await check_rate_limit(redis_client, "a", "two", 60000, 1)).allowed
    assert (await check_rate_limit(redis_client, "b", "one", 60000, 1)).allowed
    assert not (await check_rate_limit(redis_client, "a", "one", 60000, 1)).allowed


async def test_counter_without_ttl_gets_one(redis_client):
    await redis_client.set("ratelimit:a:fp", 5)
    result = await check_rate_limit(redis_client, "a", "fp", 60000, 3)
    assert not result.allowed
    assert 0 < await redis_client.pttl("ratelimit:a:fp") <= 60000


async def test_guest_limit_uses_configured_quota(redis_client, monkeypatch):
    monkeypatch.setattr("meetsync.config.GUEST_RATE_LIMIT_MAX_REQUESTS", 1)
    assert (await check_guest_request_rate_limit(redis_client, "fp")).allowed
    assert not (await check_guest_request_rate_limit(redis_client, "fp")).allowed


async def test_daily_salt_is_stable_within_a_day(redis_client):
    first = await get_daily_salt(redis_client, "2026-11-02")
    assert await get_daily_salt(redis_client, "2026-11-02") == first
    assert await get_daily_salt(redis_client, "2026-11-03") != first
    assert await redis_client.ttl("salt:2026-11-02") > 24 * 60 * 60


async def test_fingerprint_is_stable_and_opaque(redis_client):
    first = await fingerprint_client(redis_client, "203.0.113.7")
    assert await fingerprint_client(redis_client, "203.0.113.7") == first
    assert await fingerprint_client(redis_client, "203.0.113.8") != first
    assert "203.0.113.7" not in first
    assert len(first) == 64


def test_client_ip_prefers_forwarded_header():
    assert get_client_ip(build_request({"X-Forwarded-For": "1.2.3.4, 10.0.0.2"})) == "1.2.3.4"
    assert get_client_ip(build_request({"X-Real-IP": "5.6.7.8"})) == "5.6.7.8"
    assert get_client_ip(build_request()) == "10.0.0.1"
    assert get_client_ip(build_request(client=None)) == "unknown"
