"""Root conftest — shared test configuration."""

import os

# Tests never touch a real database unless a fixture opts in
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PERSIST_INVOCATIONS", "false")
os.environ.setdefault("LOG_FORMAT", "text")
