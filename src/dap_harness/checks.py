"""The ``adapter_test`` decorator.

A test decorated with ``adapter_test`` fails when the adapter logged an error
marker during the test, even if every assertion in the test passed::

    @adapter_test
    async def test_hits_breakpoint(dap_context):
        await dap_context.client.hit_breakpoint(launch_args, location)

``adapter_test.only`` runs just the marked tests; ``adapter_test.skip`` is
``pytest.mark.skip``.
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING
from typing import Any

import pytest

from dap_harness.session import format_adapter_errors

if TYPE_CHECKING:
    from collections.abc import Awaitable
    from collections.abc import Callable

    from dap_harness.session import HarnessContext

    Assertion = Callable[..., Awaitable[Any]]

CONTEXT_FIXTURE = "dap_context"
ONLY_MARKER = "dap_only"


def _collect(func: Any) -> Any:
    """Plain registration: pytest collects the function as it is."""
    return func


def _with_context_parameter(signature: inspect.Signature) -> inspect.Signature:
    params = list(signature.parameters.values())
    context = inspect.Parameter(CONTEXT_FIXTURE, inspect.Parameter.KEYWORD_ONLY)
    if params and params[-1].kind is inspect.Parameter.VAR_KEYWORD:
        params.insert(len(params) - 1, context)
    else:
        params.append(context)
    return signature.replace(parameters=params)


def supervise(assertion: Assertion) -> Assertion:
    """Wrap a coroutine test so it also fails on logged adapter errors.

    If the test itself fails, that failure is what gets reported; any adapter
    errors are attached to it as a note.
    """
    if not inspect.iscoroutinefunction(assertion):
        raise TypeError(f"{assertion.__qualname__} must be an 'async def' test")

    signature = inspect.signature(assertion)
    wants_context = CONTEXT_FIXTURE in signature.parameters

    @functools.wraps(assertion)
    async def supervised(*args: Any, **kwargs: Any) -> None:
        if wants_context:
            context: HarnessContext = kwargs[CONTEXT_FIXTURE]
        else:
            context = kwargs.pop(CONTEXT_FIXTURE)

        try:
            await assertion(*args, **kwargs)
        except (Exception, pytest.fail.Exception) as e:
            if context.errors:
                e.add_note(f"Adapter also logged: {format_adapter_errors(context.errors)}")
            raise

        context.check_adapter_errors()

    if not wants_context:
        supervised.__signature__ = _with_context_parameter(signature)  # type: ignore[attr-defined]
    return pytest.mark.asyncio(supervised)


class LogCheckedTest:
    """Test registration that adds the adapter log check."""

    def __init__(self, register: Callable[[Any], Any] = _collect) -> None:
        self._register = register

    def __call__(self, assertion: Assertion | None = None) -> Any:
        # Nothing to supervise: hand back the plain registration.
        if assertion is None:
            return self._register
        return self._register(supervise(assertion))

    @functools.cached_property
    def only(self) -> LogCheckedTest:
        """Like ``adapter_test``, but the run is limited to tests registered this way."""
        return LogCheckedTest(getattr(pytest.mark, ONLY_MARKER))

    skip = pytest.mark.skip


adapter_test = LogCheckedTest()
