"""
Per-invocation state threaded through the middleware pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class InvocationRecord:
    """
    Mutable state for a single invocation.

    Created fresh for every call of a wrapped handler and discarded when it
    returns. Steps communicate through `internal`; `responded` and
    `short_circuited` are the explicit flags the combinator checks instead of
    inspecting `response` directly.
    """

    event: Any
    context: Any = None
    body: Any = None
    validated: bool = False
    response: Any = None
    responded: bool = False
    error: Optional[BaseException] = None
    short_circuited: bool = False
    # set by strict validation; the after phase is skipped
    fatal: bool = False
    security_context: Any = None
    internal: Dict[str, Any] = field(default_factory=dict)

    def accept(self, body: Any) -> None:
        """Store the validated payload handed to the business function."""
        self.body = body
        self.validated = True

    def respond(self, response: Any, short_circuit: bool = False) -> None:
        """Set the produced response; `short_circuit` skips remaining before steps."""
        self.response = response
        self.responded = True
        if short_circuit:
            self.short_circuited = True

    def fail(self, error: BaseException, fatal: bool = False) -> None:
        """Capture an error and stop the before phase; `fatal` also skips the after phase."""
        self.error = error
        self.short_circuited = True
        if fatal:
            self.fatal = True

    def clear_response(self) -> None:
        self.response = None
        self.responded = False

    @property
    def should_stop(self) -> bool:
        return self.responded or self.short_circuited

    @property
    def payload(self) -> Any:
        """Validated body when a schema step accepted one, else the (normalized) event."""
        return self.body if self.validated else self.event
