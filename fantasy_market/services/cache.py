# fantasy_market/services/cache.py
from __future__ import annotations
import asyncio
import functools
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool

# In-process TTL caches by namespace
# value = (expires_at_epoch, stored_at_epoch, data)
_CACHES: Dict[str, Dict[Tuple[Any, ...], Tuple[float, int, Any]]] = {}
_LOCK = threading.Lock()

def _cache_for(namespace: str) -> Dict[Tuple[Any, ...], Tuple[float, int, Any]]:
    with _LOCK:
        return _CACHES.setdefault(namespace, {})

def _now() -> float:
    return time.time()

def clear_cache(namespace: Optional[str] = None) -> None:
    with _LOCK:
        if namespace is None:
            _CACHES.clear()
        else:
            _CACHES.pop(namespace, None)

def cache_get(namespace: str, key: Tuple[Any, ...]) -> Tuple[bool, Any, int]:
    """Return (hit, data, stored_at); expired entries are evicted."""
    cache = _cache_for(namespace)
    entry = cache.get(key)
    if entry:
        exp_at, stored_at, data = entry
        if exp_at > _now():
            return True, data, stored_at
        cache.pop(key, None)
    return False, None, 0

def cache_set(namespace: str, key: Tuple[Any, ...], data: Any, ttl_seconds: int) -> int:
    now = _now()
    stored_at = int(now)
    _cache_for(namespace)[key] = (now + ttl_seconds, stored_at, data)
    return stored_at

def _set_headers(response, state: str, stored_at: int, ttl_seconds: int, cache_control: str | None) -> None:
    if response is None:
        return
    response.headers["X-Cache"] = state
    response.headers["X-Cache-Stored-At"] = str(stored_at)
    response.headers["Cache-Control"] = cache_control or f"private, max-age={ttl_seconds}"

def cache_route(
    *,
    namespace: str,
    ttl_seconds: int,
    key_builder: Callable[..., Tuple[Any, ...]],
    cache_control: str | None = None,  # defaults to private,max-age=ttl
):
    """
    Decorator for FastAPI routes (sync or async).
    - Caches the returned data by a computed key.
    - Sets X-Cache: HIT|MISS, X-Cache-Stored-At, and Cache-Control on the Response if present in kwargs.
    """
    def decorator(fn: Callable):
        is_async = asyncio.iscoroutinefunction(fn)

        async def _call(*args, **kwargs):
            if is_async:
                return await fn(*args, **kwargs)
            # sync bodies may block on upstream I/O; keep them off the event loop
            return await run_in_threadpool(fn, *args, **kwargs)

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            response = kwargs.get("response")
            key = key_builder(*args, **kwargs)

            hit, data, stored_at = cache_get(namespace, key)
            if hit:
                _set_headers(response, "HIT", stored_at, ttl_seconds, cache_control)
                return data

            data = await _call(*args, **kwargs)
            stored_at = cache_set(namespace, key, data, ttl_seconds)
            _set_headers(response, "MISS", stored_at, ttl_seconds, cache_control)
            return data

        return wrapper
    return decorator

def memoize_ttl(*, namespace: str, ttl_seconds: Callable[[], int] | int):
    """Cache a plain function's result per positional-args key."""
    def decorator(fn: Callable):
        @functools.wraps(fn)
        def wrapper(*args):
            key = key_tuple(*args)
            hit, data, _ = cache_get(namespace, key)
            if hit:
                return data
            data = fn(*args)
            ttl = ttl_seconds() if callable(ttl_seconds) else ttl_seconds
            cache_set(namespace, key, data, ttl)
            return data

        return wrapper
    return decorator

# ------------- common key helpers -------------

def key_tuple(*parts: Any) -> Tuple[Any, ...]:
    return tuple(parts)
