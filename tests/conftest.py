# tests/conftest.py
"""
Pytest configuration and fixtures.
Adds src to sys.path so `import deptcms` works without an install, and sends
file logs to a temporary directory.
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
src_root = project_root / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from deptcms.infrastructure.stores.models import AdminUserModel  # noqa: E402
from deptcms.infrastructure.stores.sqlalchemy_db import SessionProvider  # noqa: E402
from deptcms.utils.actor_context import clear_current_actor  # noqa: E402
from deptcms.utils.logging_config import Logger  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def _log_to_tmp(tmp_path_factory):
    Logger.init(level="DEBUG", base_dir=str(tmp_path_factory.mktemp("logs")), force=True)
    yield
    Logger.close()


@pytest.fixture(autouse=True)
def _reset_actor():
    clear_current_actor()
    yield
    clear_current_actor()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'deptcms.db'}"


@pytest.fixture
def admin_user(db_url: str):
    """Insert an admin user and return its id; schema must already exist."""

    def _create(email: str = "admin@aiesr.edu", name: str = "Site Admin") -> str:
        provider = SessionProvider(db_url)
        try:
            with provider.session() as session:
                row = AdminUserModel(email=email, name=name)
                session.add(row)
                session.commit()
                return row.id
        finally:
            provider.dispose()

    return _create
