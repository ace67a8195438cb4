import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTONOMY_DB_PATH", ":memory:")
os.environ.setdefault("AUTONOMY_PREFERENCES_PATH", str(ROOT / "tests" / "does-not-exist.json"))

from autonomy.config import get_settings  # noqa: E402
from autonomy.database import close_db, init_db  # noqa: E402
from autonomy.schemas.workflow import Workflow  # noqa: E402
from autonomy.services.builtin_workflows import DAILY_GROK  # noqa: E402
from autonomy.services.persistence import InMemoryPersistence  # noqa: E402
from autonomy.services.registry import WorkflowRegistry  # noqa: E402

DEPLOY_STAGING = Workflow(
    name="deploy-staging",
    entrypoint="/tmp/deploy.ts",
    description="Deploy to staging environment",
    triggers=["deploy staging", "push to staging", "staging deploy"],
)


@pytest.fixture(autouse=True)
def reset_state():
    get_settings.cache_clear()
    close_db()
    yield
    close_db()
    get_settings.cache_clear()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "state" / "arachne.db"


@pytest.fixture
def engine(db_path):
    return init_db(db_path)


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def registry(persistence):
    registry = WorkflowRegistry(persistence=persistence)
    registry.register(DAILY_GROK)
    registry.register(DEPLOY_STAGING)
    return registry
