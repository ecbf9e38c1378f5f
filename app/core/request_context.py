import contextvars
from contextlib import contextmanager
import functools
import uuid

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
user_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("user_id", default=None)
canvas_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("canvas_id", default=None)


def set_request_id(request_id: str) -> contextvars.Token:
    """Store the current request ID in a context variable."""
    return request_id_var.set(request_id)


def reset_request_id(token: contextvars.Token) -> None:
    """Reset the request ID context variable to a previous state."""
    request_id_var.reset(token)


def get_request_id() -> str | None:
    """Retrieve the current request ID from the context."""
    return request_id_var.get()


def get_user_id() -> str | None:
    return user_id_var.get()


def get_canvas_id() -> str | None:
    return canvas_id_var.get()


def _normalize_id(value: uuid.UUID | str | None) -> str | None:
    if value is None:
        return None
    return str(value)


@contextmanager
def log_context(
    user_id: str | None = None,
    canvas_id: uuid.UUID | str | None = None,
):
    """Temporarily scope user/canvas context for structured logs."""
    tokens: list[tuple[contextvars.ContextVar[str | None], contextvars.Token]] = []
    if user_id is not None:
        tokens.append((user_id_var, user_id_var.set(user_id)))
    if canvas_id is not None:
        tokens.append((canvas_id_var, canvas_id_var.set(_normalize_id(canvas_id))))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def scoped_to_caller(method):
    """Bind the caller id (the method's first argument) to the log context for the call."""

    @functools.wraps(method)
    def wrapper(self, user_id, *args, **kwargs):
        with log_context(user_id=user_id):
            return method(self, user_id, *args, **kwargs)

    return wrapper
