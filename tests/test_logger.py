import structlog

from component_webhooks.core.logger import bind_request_context, clear_request_context, package_context


def test_bind_request_context_keeps_keys_left_unset() -> None:
    clear_request_context()
    try:
        bind_request_context(request_id="req-1")
        bind_request_context(package="test-pkg")

        context = structlog.contextvars.get_contextvars()
        assert context["request_id"] == "req-1"
        assert context["package"] == "test-pkg"
    finally:
        clear_request_context()


def test_package_context_restores_the_previous_package() -> None:
    clear_request_context()
    try:
        bind_request_context(package="outer")
        with package_context("inner"):
            assert structlog.contextvars.get_contextvars()["package"] == "inner"
        assert structlog.contextvars.get_contextvars()["package"] == "outer"
    finally:
        clear_request_context()
