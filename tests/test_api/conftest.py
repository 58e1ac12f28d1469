"""
Fixtures for API route tests.

Routes are exercised with the real application and FastAPI's TestClient;
services are swapped for fakes through dependency overrides.
"""

from typing import Any, Callable, Optional
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.api.deps import get_current_user_id
from src.api.main import app


class FakeService:
    """
    Records calls and answers with canned results.

    ``error`` is raised instead of answering, to check how the API maps a
    service failure to a response.
    """

    def __init__(self, results: Optional[dict[str, Any]] = None, error: Optional[Exception] = None):
        self.results = results or {}
        self.error = error
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)

        async def method(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args, kwargs))
            if self.error is not None:
                raise self.error
            return self.results.get(name)

        return method


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    """Ensure dependency overrides are isolated per test."""
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def acting_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def client(acting_user_id: UUID) -> TestClient:
    """Client whose requests are attributed to ``acting_user_id``."""
    app.dependency_overrides[get_current_user_id] = lambda: acting_user_id
    return TestClient(app)


@pytest.fixture
def anonymous_client() -> TestClient:
    """Client going through the real bearer token dependency."""
    return TestClient(app)


@pytest.fixture
def install_service():
    """Install a FakeService in place of a service provider dependency."""

    def _install(provider: Callable[..., Any], **kwargs: Any) -> FakeService:
        fake = FakeService(**kwargs)
        app.dependency_overrides[provider] = lambda: fake
        return fake

    return _install
