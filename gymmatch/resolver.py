"""
Generic lookup-then-compute helper shared by gym resolution and venue geocoding.

Both call sites follow the same shape: derive a normalized key, return the
stored answer when there is one, otherwise compute it and persist the result.
"""
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

K = TypeVar("K")
V = TypeVar("V")

MaybeAwaitable = Union[V, Awaitable[V]]


@dataclass
class Resolution(Generic[V]):
    key: Any
    value: Optional[V]
    cached: bool


async def maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


async def resolve_with_cache(
    raw_key: K,
    normalize_key: Callable[[K], Any],
    lookup: Callable[[Any], MaybeAwaitable[Optional[V]]],
    compute: Callable[[Any], MaybeAwaitable[Optional[V]]],
    persist: Optional[Callable[[Any, V], MaybeAwaitable[Any]]] = None,
) -> Resolution[V]:
    """
    Resolve a value through a cache.

    Args:
        raw_key: Un-normalized key as the caller knows it.
        normalize_key: Maps raw_key to the cache key.
        lookup: Returns the cached value for a key, or None on a miss.
        compute: Produces the value on a miss. May return None (nothing to cache).
        persist: Stores a computed, non-None value under the key.

    Callbacks may be plain functions or coroutines.

    Returns:
        Resolution: The normalized key, the value and whether it came from the cache.
    """
    key = normalize_key(raw_key)
    cached = await maybe_await(lookup(key))
    if cached is not None:
        return Resolution(key=key, value=cached, cached=True)

    value = await maybe_await(compute(key))
    if value is not None and persist is not None:
        await maybe_await(persist(key, value))
    return Resolution(key=key, value=value, cached=False)
