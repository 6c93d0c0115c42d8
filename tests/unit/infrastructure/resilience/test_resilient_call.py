import pytest

from triagecli.domain.errors import CircuitOpenError, NotAuthenticatedError, ProviderError
from triagecli.infrastructure.cache.file_cache import FileCacheImpl
from triagecli.infrastructure.resilience.api_retry import RetryPolicy
from triagecli.infrastructure.resilience.circuit_breaker import CircuitBreaker
from triagecli.infrastructure.resilience.resilient_call import ResilientCaller


class CountingOperation:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(threshold=2, reset_seconds=60, clock=clock, name="openai")


@pytest.fixture
def caller(breaker, recording_sleep):
    return ResilientCaller("openai", breaker, RetryPolicy(max_attempts=3, sleep=recording_sleep))


@pytest.fixture
def cache(cache_root):
    return FileCacheImpl("models", ttl=60, cache_root=cache_root)


@pytest.mark.asyncio
async def test_success_is_recorded(caller, breaker):
    breaker.record_failure()
    operation = CountingOperation(result=42)

    assert await caller.call(operation) == 42
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_terminal_failure_counts_once_after_retries(caller, breaker):
    operation = CountingOperation(error=ProviderError("down", status=503))

    with pytest.raises(ProviderError):
        await caller.call(operation)

    assert operation.calls == 3
    assert breaker.failure_count == 1


@pytest.mark.asyncio
async def test_permanent_failure_is_recorded_without_retry(caller, breaker):
    operation = CountingOperation(error=NotAuthenticatedError("openai", "OPENAI_API_KEY"))

    with pytest.raises(NotAuthenticatedError):
        await caller.call(operation)

    assert operation.calls == 1
    assert breaker.failure_count == 1


@pytest.mark.asyncio
async def test_open_circuit_never_invokes_operation(caller, breaker):
    breaker.record_failure()
    breaker.record_failure()
    operation = CountingOperation(result="unused")

    with pytest.raises(CircuitOpenError):
        await caller.call(operation)

    assert operation.calls == 0
    # Rejected calls are not failures of the dependency
    assert breaker.failure_count == 2


@pytest.mark.asyncio
async def test_half_open_trial_success_closes_circuit(caller, breaker, clock):
    breaker.record_failure()
    breaker.record_failure()
    clock.advance(60)

    assert await caller.call(CountingOperation(result="ok")) == "ok"
    assert not breaker.is_open()
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_cached_call_fresh_hit_skips_operation(caller, cache):
    await cache.set("openai", ["gpt-4o"])
    operation = CountingOperation(result=["other"])

    assert await caller.cached_call(cache, "openai", operation) == ["gpt-4o"]
    assert operation.calls == 0


@pytest.mark.asyncio
async def test_cached_call_miss_fetches_and_stores(caller, cache):
    operation = CountingOperation(result=["gpt-4o", "gpt-4o-mini"])

    assert await caller.cached_call(cache, "openai", operation) == ["gpt-4o", "gpt-4o-mini"]
    assert await cache.get("openai") == ["gpt-4o", "gpt-4o-mini"]
    assert operation.calls == 1


@pytest.mark.asyncio
async def test_cached_call_serves_stale_when_circuit_open(caller, breaker, cache_root):
    expired_cache = FileCacheImpl("models", ttl=0, cache_root=cache_root)
    await expired_cache.set("openai", ["stale-model"])
    breaker.record_failure()
    breaker.record_failure()
    operation = CountingOperation(result=["fresh"])

    assert await caller.cached_call(expired_cache, "openai", operation) == ["stale-model"]
    assert operation.calls == 0


@pytest.mark.asyncio
async def test_cached_call_raises_circuit_open_without_stale_entry(caller, breaker, cache):
    breaker.record_failure()
    breaker.record_failure()

    with pytest.raises(CircuitOpenError):
        await caller.cached_call(cache, "openai", CountingOperation(result=["fresh"]))


@pytest.mark.asyncio
async def test_cached_call_serves_stale_after_transient_failures(caller, cache_root):
    expired_cache = FileCacheImpl("models", ttl=0, cache_root=cache_root)
    await expired_cache.set("openai", ["stale-model"])
    operation = CountingOperation(error=ProviderError("down", status=502))

    assert await caller.cached_call(expired_cache, "openai", operation) == ["stale-model"]
    assert operation.calls == 3


@pytest.mark.asyncio
async def test_cached_call_permanent_error_propagates_despite_stale(caller, cache_root):
    expired_cache = FileCacheImpl("models", ttl=0, cache_root=cache_root)
    await expired_cache.set("openai", ["stale-model"])
    operation = CountingOperation(error=NotAuthenticatedError("openai", "OPENAI_API_KEY"))

    with pytest.raises(NotAuthenticatedError):
        await caller.cached_call(expired_cache, "openai", operation)


@pytest.mark.asyncio
async def test_cached_call_without_stale_fallback(caller, breaker, cache_root):
    expired_cache = FileCacheImpl("models", ttl=0, cache_root=cache_root)
    await expired_cache.set("openai", ["stale-model"])
    breaker.record_failure()
    breaker.record_failure()

    with pytest.raises(CircuitOpenError):
        await caller.cached_call(expired_cache, "openai", CountingOperation(), allow_stale=False)


@pytest.mark.asyncio
async def test_cached_call_treats_cached_none_as_hit(caller, cache):
    await cache.set("openai", None)
    operation = CountingOperation(result=["fresh"])

    assert await caller.cached_call(cache, "openai", operation) is None
    assert operation.calls == 0


@pytest.mark.asyncio
async def test_cached_call_serves_stale_none(caller, breaker, cache_root):
    expired_cache = FileCacheImpl("models", ttl=0, cache_root=cache_root)
    await expired_cache.set("openai", None)
    breaker.record_failure()
    breaker.record_failure()

    assert await caller.cached_call(expired_cache, "openai", CountingOperation(result=["fresh"])) is None
