"""Tests for ApiClient against a scripted upstream server."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from resilient_http.cache import ResponseCache
from resilient_http.client import ApiClient, ApiResult
from resilient_http.exceptions import (
    HttpStatusError,
    InterceptorError,
    InvalidUsageError,
    RetryExhausted,
)
from resilient_http.interceptors import UNCHANGED
from resilient_http.models import CacheConfig, ClientConfig, RequestConfig, RequestOptions


USERS = [{"id": 1, "name": "Leanne"}, {"id": 2, "name": "Ervin"}]


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _client(config: ClientConfig, server, **kwargs) -> ApiClient:
    return ApiClient(config, http_transport=server.transport, **kwargs)


# ---------------------------------------------------------------------------
# GET and caching
# ---------------------------------------------------------------------------


class TestGet:
    @pytest.mark.asyncio
    async def test_fresh_get_is_cached(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            result = await client.get("/users")

            assert result == ApiResult(data=USERS, from_cache=False, status_code=200)
            assert "GET:https://api.example.com/users" in client.cache
            assert len(server.calls("GET", "/users")) == 1

    @pytest.mark.asyncio
    async def test_repeat_served_from_cache(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            await client.get("/users")
            again = await client.get("/users")

        assert again.from_cache is True
        assert again.data == USERS
        assert again.status_code is None
        assert len(server.calls()) == 1

    @pytest.mark.asyncio
    async def test_caller_mutation_does_not_leak_into_cache(self, server, fast_config) -> None:
        server.json("GET", "/users", [{"id": 1}])
        async with _client(fast_config, server) as client:
            first = await client.get("/users")
            first.data.append({"id": "injected"})
            second = await client.get("/users")
            assert second.from_cache is True
            assert second.data == [{"id": 1}]

            second.data[0]["id"] = "changed"
            third = await client.get("/users")

        assert third.from_cache is True
        assert third.data == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, server, fast_config) -> None:
        clock = FakeClock()
        server.route(
            "GET", "/users",
            httpx.Response(200, json=USERS[:1]),
            httpx.Response(200, json=USERS),
        )
        cache = ResponseCache(fast_config.cache, clock=clock)
        async with _client(fast_config, server, cache=cache) as client:
            await client.get("/users")
            clock.now += 61
            result = await client.get("/users")

        assert result.from_cache is False
        assert result.data == USERS
        assert len(server.calls()) == 2

    @pytest.mark.asyncio
    async def test_entry_within_ttl_served(self, server, fast_config) -> None:
        clock = FakeClock()
        server.json("GET", "/users", USERS)
        cache = ResponseCache(fast_config.cache, clock=clock)
        async with _client(fast_config, server, cache=cache) as client:
            await client.get("/users")
            clock.now += 59
            result = await client.get("/users")

        assert result.from_cache is True

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_and_stores(self, server, fast_config) -> None:
        server.route(
            "GET", "/users",
            httpx.Response(200, json=USERS[:1]),
            httpx.Response(200, json=USERS),
        )
        async with _client(fast_config, server) as client:
            await client.get("/users")
            refreshed = await client.get("/users", force_refresh=True)
            cached = await client.get("/users")

        assert refreshed.from_cache is False
        assert cached.from_cache is True
        assert cached.data == USERS
        assert len(server.calls()) == 2

    @pytest.mark.asyncio
    async def test_params_are_part_of_cache_key(self, server, fast_config) -> None:
        server.route(
            "GET", "/posts",
            lambda request: httpx.Response(200, json={"user": request.url.params.get("userId")}),
        )
        async with _client(fast_config, server) as client:
            one = await client.get("/posts", params={"userId": "1"})
            two = await client.get("/posts", params={"userId": "2"})
            one_again = await client.get("/posts", params={"userId": "1"})

            assert one.data == {"user": "1"}
            assert two.data == {"user": "2"}
            assert one_again.from_cache is True
            assert "GET:https://api.example.com/posts?userId=1" in client.cache

    @pytest.mark.asyncio
    async def test_disabled_cache_always_fetches(self, server, fast_config) -> None:
        config = fast_config.model_copy(update={"cache": CacheConfig(enabled=False)})
        server.json("GET", "/users", USERS)
        async with _client(config, server) as client:
            await client.get("/users")
            result = await client.get("/users")

            assert result.from_cache is False
            assert len(client.cache) == 0
        assert len(server.calls()) == 2

    @pytest.mark.asyncio
    async def test_sends_headers_and_accept(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            await client.get("/users", headers={"X-Trace": "abc"})

        request = server.requests[0]
        assert request.headers["X-Trace"] == "abc"
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, server, fast_config) -> None:
        server.route("GET", "/ping", httpx.Response(204))
        async with _client(fast_config, server) as client:
            result = await client.get("/ping")
        assert result.data is None
        assert result.status_code == 204


# ---------------------------------------------------------------------------
# Writes and invalidation
# ---------------------------------------------------------------------------


class TestWrites:
    @pytest.mark.asyncio
    async def test_post_sends_json_and_invalidates_family(self, server, fast_config) -> None:
        server.json("GET", "/posts", [{"id": 1}])
        server.json("GET", "/users", USERS)
        server.json("POST", "/posts", {"id": 101, "title": "x"}, status_code=201)
        async with _client(fast_config, server) as client:
            await client.get("/posts")
            await client.get("/users")
            created = await client.post("/posts", {"title": "x"})

            assert created.data == {"id": 101, "title": "x"}
            assert created.status_code == 201
            assert "GET:https://api.example.com/posts" not in client.cache
            assert "GET:https://api.example.com/users" in client.cache

        post = server.calls("POST", "/posts")[0]
        assert server.body(post) == {"title": "x"}
        assert post.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_result_not_cached(self, server, fast_config) -> None:
        server.json("POST", "/posts", {"id": 101})
        async with _client(fast_config, server) as client:
            await client.post("/posts", {"title": "x"})
            assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_put_invalidates_item_and_collection(self, server, fast_config) -> None:
        server.json("GET", "/posts", [{"id": 1}])
        server.json("GET", "/posts/1", {"id": 1})
        server.json("PUT", "/posts/1", {"id": 1, "title": "new"})
        async with _client(fast_config, server) as client:
            await client.get("/posts")
            await client.get("/posts/1")
            updated = await client.put("/posts/1", {"id": 1, "title": "new"})

            assert updated.data == {"id": 1, "title": "new"}
            assert len(client.cache) == 0

    @pytest.mark.asyncio
    async def test_delete(self, server, fast_config) -> None:
        server.json("GET", "/posts", [{"id": 1}])
        server.json("DELETE", "/posts/1", {})
        async with _client(fast_config, server) as client:
            await client.get("/posts")
            result = await client.delete("/posts/1")

            assert result.data == {}
            assert result.to_dict() == {"from_cache": False}
            assert len(client.cache) == 0

        assert server.calls("DELETE", "/posts/1")[0].content == b""

    @pytest.mark.asyncio
    async def test_request_with_string_method(self, server, fast_config) -> None:
        server.json("DELETE", "/posts/1", {})
        async with _client(fast_config, server) as client:
            result = await client.request("delete", "/posts/1")
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_method_rejected(self, server, fast_config) -> None:
        async with _client(fast_config, server) as client:
            with pytest.raises(InvalidUsageError):
                await client.request("PATCH", "/posts/1")
        assert server.requests == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_status_error_not_retried_or_cached(self, server, fast_config) -> None:
        server.json("GET", "/users/999", {"message": "not found"}, status_code=404)
        async with _client(fast_config, server) as client:
            with pytest.raises(HttpStatusError) as exc_info:
                await client.get("/users/999")

            assert len(client.cache) == 0

        err = exc_info.value
        assert err.status == 404
        assert err.body == {"message": "not found"}
        assert str(err) == "HTTP 404: not found"
        assert err.exit_code == 4
        assert len(server.calls()) == 1

    @pytest.mark.asyncio
    async def test_server_error_on_post_not_replayed(self, server, fast_config) -> None:
        server.route("POST", "/posts", httpx.Response(500, text="boom"))
        async with _client(fast_config, server) as client:
            with pytest.raises(HttpStatusError) as exc_info:
                await client.post("/posts", {"title": "x"})
        assert exc_info.value.status == 500
        assert len(server.calls()) == 1

    @pytest.mark.asyncio
    async def test_failed_post_does_not_invalidate(self, server, fast_config) -> None:
        server.json("GET", "/posts", [{"id": 1}])
        server.json("POST", "/posts", {"error": "bad"}, status_code=400)
        async with _client(fast_config, server) as client:
            await client.get("/posts")
            with pytest.raises(HttpStatusError):
                await client.post("/posts", {})
            assert "GET:https://api.example.com/posts" in client.cache

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, server, fast_config) -> None:
        server.route("GET", "/slow", httpx.ReadTimeout("slow"))
        async with _client(fast_config, server) as client:
            with pytest.raises(RetryExhausted) as exc_info:
                await client.get("/slow")

            assert len(client.cache) == 0

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error.kind == "timeout"
        assert len(server.calls()) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_connect_error(self, server, fast_config) -> None:
        server.route(
            "GET", "/users",
            httpx.ConnectError("refused"),
            httpx.Response(200, json=USERS),
        )
        async with _client(fast_config, server) as client:
            result = await client.get("/users")
        assert result.data == USERS
        assert len(server.calls()) == 2

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, server, fast_config) -> None:
        config = fast_config.model_copy(
            update={"request": RequestConfig(timeout=5, max_retries=0, retry_base_delay=0)}
        )
        server.route("GET", "/users", httpx.ConnectError("refused"))
        async with _client(config, server) as client:
            with pytest.raises(RetryExhausted) as exc_info:
                await client.get("/users")
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_client_usable_after_failure(self, server, fast_config) -> None:
        server.json("GET", "/users/999", {}, status_code=404)
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            with pytest.raises(HttpStatusError):
                await client.get("/users/999")
            result = await client.get("/users")
        assert result.data == USERS

    @pytest.mark.asyncio
    async def test_empty_endpoint_rejected(self, server, fast_config) -> None:
        async with _client(fast_config, server) as client:
            with pytest.raises(InvalidUsageError):
                await client.get("")
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_unserializable_payload_is_invalid_usage(
        self, server, fast_config, plain_output, capsys
    ) -> None:
        config = fast_config.model_copy(update={"enable_logging": True})
        async with _client(config, server) as client:
            with pytest.raises(InvalidUsageError) as exc_info:
                await client.post("/posts", {"tags": {1, 2}})

        assert exc_info.value.kind == "invalid_usage"
        assert "not JSON serializable" in str(exc_info.value)
        assert server.requests == []
        assert "[Error] https://api.example.com/posts" in capsys.readouterr().err

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [None, {"q": "x"}])
    async def test_malformed_url_is_invalid_usage(self, server, fast_config, params) -> None:
        async with _client(fast_config, server) as client:
            with pytest.raises(InvalidUsageError):
                await client.get("/users\x00", params=params)
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_usage_errors_are_logged(self, server, fast_config, plain_output, capsys) -> None:
        config = fast_config.model_copy(update={"enable_logging": True})
        async with _client(config, server) as client:
            with pytest.raises(InvalidUsageError):
                await client.get("")
        assert "[Error] https://api.example.com" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_not_open_rejected(self, fast_config) -> None:
        client = ApiClient(fast_config)
        with pytest.raises(InvalidUsageError, match="not open"):
            await client.get("/users")


# ---------------------------------------------------------------------------
# Interceptors
# ---------------------------------------------------------------------------


class TestInterceptors:
    @pytest.mark.asyncio
    async def test_request_interceptor_headers_sent(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            client.add_request_interceptor(
                lambda url, options: options.with_headers({"Authorization": "Bearer t"})
            )
            await client.get("/users")
        assert server.requests[0].headers["Authorization"] == "Bearer t"

    @pytest.mark.asyncio
    async def test_response_interceptor_result_cached(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            client.add_response_interceptor(lambda response, data: {"items": data})
            await client.get("/users")
            cached = await client.get("/users")
        assert cached.data == {"items": USERS}

    @pytest.mark.asyncio
    async def test_interceptors_skipped_on_cache_hit(self, server, fast_config) -> None:
        calls: list[str] = []

        def on_request(url: str, options: RequestOptions) -> None:
            calls.append("request")

        def on_response(response: httpx.Response, data: object) -> object:
            calls.append("response")
            return UNCHANGED

        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            client.add_request_interceptor(on_request)
            client.add_response_interceptor(on_response)
            await client.get("/users")
            await client.get("/users")
        assert calls == ["request", "response"]

    @pytest.mark.asyncio
    async def test_response_interceptor_not_run_on_error_status(self, server, fast_config) -> None:
        calls: list[int] = []
        server.json("GET", "/users", {}, status_code=500)
        async with _client(fast_config, server) as client:
            client.add_response_interceptor(lambda response, data: calls.append(1))
            with pytest.raises(HttpStatusError):
                await client.get("/users")
        assert calls == []

    @pytest.mark.asyncio
    async def test_failing_interceptor_aborts_call(self, server, fast_config) -> None:
        def explode(url: str, options: RequestOptions) -> None:
            raise RuntimeError("no token")

        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            client.add_request_interceptor(explode)
            with pytest.raises(InterceptorError) as exc_info:
                await client.get("/users")
        assert exc_info.value.phase == "request"
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_failing_response_interceptor_skips_cache(self, server, fast_config) -> None:
        def explode(response: httpx.Response, data: object) -> None:
            raise KeyError("items")

        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            client.add_response_interceptor(explode)
            with pytest.raises(InterceptorError):
                await client.get("/users")
            assert len(client.cache) == 0


# ---------------------------------------------------------------------------
# Cache management, concurrency and logging
# ---------------------------------------------------------------------------


class TestCacheManagement:
    @pytest.mark.asyncio
    async def test_stats_and_clear(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        server.json("GET", "/posts", [])
        async with _client(fast_config, server) as client:
            await client.get("/users")
            await client.get("/posts")
            stats = client.get_cache_stats()
            assert stats["size"] == 2
            assert sorted(stats["keys"]) == [
                "GET:https://api.example.com/posts",
                "GET:https://api.example.com/users",
            ]

            client.clear_cache()
            client.clear_cache()
            assert client.get_cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_invalidate_cache_returns_count(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        server.json("GET", "/users/1", USERS[0])
        server.json("GET", "/posts", [])
        async with _client(fast_config, server) as client:
            for endpoint in ("/users", "/users/1", "/posts"):
                await client.get(endpoint)
            assert client.invalidate_cache("users") == 2
            assert client.get_cache_stats()["keys"] == ["GET:https://api.example.com/posts"]

    @pytest.mark.asyncio
    async def test_shared_cache_between_clients(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        cache = ResponseCache(fast_config.cache)
        async with _client(fast_config, server, cache=cache) as first:
            await first.get("/users")
        async with _client(fast_config, server, cache=cache) as second:
            result = await second.get("/users")
        assert result.from_cache is True

    @pytest.mark.asyncio
    async def test_concurrent_gets_all_succeed(self, server, fast_config) -> None:
        server.json("GET", "/users", USERS)
        server.json("GET", "/posts", [])
        async with _client(fast_config, server) as client:
            results = await asyncio.gather(
                client.get("/users"), client.get("/posts"), client.get("/users")
            )
        assert [r.data for r in results] == [USERS, [], USERS]


class TestLogging:
    @pytest.mark.asyncio
    async def test_logs_pipeline_events(self, server, fast_config, plain_output, capsys) -> None:
        config = fast_config.model_copy(update={"enable_logging": True})
        server.route(
            "GET", "/users",
            httpx.ConnectError("refused"),
            httpx.Response(200, json=USERS),
        )
        server.json("POST", "/users", {"id": 3})
        async with _client(config, server) as client:
            await client.get("/users")
            await client.get("/users")
            await client.post("/users", {"name": "x"})
            client.clear_cache()

        err = capsys.readouterr().err
        assert "[Cache MISS] https://api.example.com/users" in err
        assert "[Request] GET https://api.example.com/users" in err
        assert "Retry attempt 1/2" in err
        assert "[Response] 200 https://api.example.com/users" in err
        assert "[Cache HIT] https://api.example.com/users" in err
        assert "[Cache] Invalidated cache for pattern: users" in err
        assert "[Cache] Cache cleared" in err

    @pytest.mark.asyncio
    async def test_logs_errors(self, server, fast_config, plain_output, capsys) -> None:
        config = fast_config.model_copy(update={"enable_logging": True})
        server.json("GET", "/users/9", {}, status_code=404)
        async with _client(config, server) as client:
            with pytest.raises(HttpStatusError):
                await client.get("/users/9")
        assert "[Error] https://api.example.com/users/9" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_silent_by_default(self, server, fast_config, plain_output, capsys) -> None:
        server.json("GET", "/users", USERS)
        async with _client(fast_config, server) as client:
            await client.get("/users")
            await client.get("/users")
        assert capsys.readouterr().err == ""
