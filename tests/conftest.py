"""Root-level pytest configuration for all tests."""

pytest_plugins = ("pytest_asyncio",)
