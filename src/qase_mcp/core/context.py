"""Per-request credential scope.

The current credential lives in a ``ContextVar``. Every asyncio task runs in
its own copy of the context, so a value set while handling one request is
visible to everything awaited inside that request and to nothing else.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_CURRENT_CREDENTIAL: ContextVar[str | None] = ContextVar("qase_request_credential", default=None)


def get_current_credential() -> str | None:
    """Return the innermost scoped credential, or ``None`` outside any scope."""
    return _CURRENT_CREDENTIAL.get()


@contextmanager
def credential_scope(value: str | None) -> Iterator[None]:
    """Expose ``value`` as the current credential for the duration of the block."""
    token = _CURRENT_CREDENTIAL.set(value)
    try:
        yield
    finally:
        _CURRENT_CREDENTIAL.reset(token)


async def run_with_credential[T](
    value: str | None,
    fn: Callable[..., Awaitable[T]],
    /,
    *args: object,
    **kwargs: object,
) -> T:
    """Await ``fn(*args, **kwargs)`` with ``value`` as the current credential.

    An empty string is still a scope: it hides any outer credential and makes
    the client factory fall back to the shared credential.
    """
    with credential_scope(value):
        return await fn(*args, **kwargs)


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return ""
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()
