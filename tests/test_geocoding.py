import httpx
import pytest

from route_optimizer.errors import TransientServiceError
from route_optimizer.services.geocoding import GeocodeResolver, normalize_address


def _resolver(handler, **kwargs) -> GeocodeResolver:
    return GeocodeResolver(
        base_url="http://geo.test",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def test_resolve_parses_first_result_and_sends_query():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"lat": "40.7128", "lon": "-74.0060"}, {"lat": "0", "lon": "0"}])

    resolver = _resolver(handler)
    point = resolver.resolve("1 Main St, Springfield")

    assert point.latitude == pytest.approx(40.7128)
    assert point.longitude == pytest.approx(-74.0060)
    assert seen[0].url.path == "/search"
    assert seen[0].url.params["q"] == "1 Main St, Springfield"
    assert seen[0].url.params["format"] == "json"


def test_resolve_is_memoized_per_normalized_address():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params["q"])
        return httpx.Response(200, json=[{"lat": "1.0", "lon": "2.0"}])

    resolver = _resolver(handler)
    resolver.resolve("1 Main St")
    resolver.resolve("1  main st ")
    resolver.resolve("1 Main St")

    assert calls == ["1 Main St"]
    assert resolver.misses == 1
    assert resolver.hits == 2
    assert resolver.cached("1 MAIN ST")


def test_unknown_address_is_cached_as_none():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=[])

    resolver = _resolver(handler)
    assert resolver.resolve("Nowhere") is None
    assert resolver.resolve("Nowhere") is None
    assert len(calls) == 1


def test_service_failure_raises_and_is_not_cached():
    responses = [httpx.Response(503), httpx.Response(503), httpx.Response(200, json=[{"lat": "1", "lon": "2"}])]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    resolver = _resolver(handler, max_retries=1)
    with pytest.raises(TransientServiceError) as excinfo:
        resolver.resolve("1 Main St")
    assert excinfo.value.service == "geocoding"
    assert not resolver.cached("1 Main St")

    point = resolver.resolve("1 Main St")
    assert point.latitude == 1.0


def test_unconfigured_resolver_returns_none_without_requests():
    resolver = GeocodeResolver(base_url="")
    assert resolver.configured is False
    assert resolver.resolve("1 Main St") is None


def test_resolve_many_deduplicates():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params["q"])
        return httpx.Response(200, json=[{"lat": "1", "lon": "2"}])

    resolver = _resolver(handler)
    resolved = resolver.resolve_many(["A St", "B St", "A St"])
    assert set(resolved) == {"A St", "B St"}
    assert calls == ["A St", "B St"]


def test_normalize_address():
    assert normalize_address("  12  Oak   Ave ") == "12 oak ave"
