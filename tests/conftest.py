import sys, os, tempfile
from datetime import datetime
import pytest

# Always force tests to use an isolated SQLite database file under a temp dir.
# Do this before importing any geata modules (geata_api.main builds an app at import).
if "GEATA_DB_URL" not in os.environ and "GEATA_DATABASE_URL" not in os.environ:
    _test_db_dir = tempfile.mkdtemp(prefix="geata_test_db_")
    os.environ["GEATA_DB_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'test_geata.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
# Ensure repository root, core and api src are on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
for _src in (os.path.join(ROOT, 'packages', 'core', 'src'), os.path.join(ROOT, 'apps', 'api', 'src')):
    if _src not in sys.path:
        sys.path.insert(0, _src)

from geata_core.config import Settings  # noqa: E402
from geata_core.db import Storage  # noqa: E402
from geata_core.init_db import init_db  # noqa: E402
from geata_core.services import build_services  # noqa: E402

ADMIN_KEY = os.environ["ADMIN_API_KEY"]

# 2024-06-10 is a Monday, 2024-06-08 a Saturday
MONDAY_10AM = datetime(2024, 6, 10, 10, 0)
SATURDAY_10AM = datetime(2024, 6, 8, 10, 0)


@pytest.fixture
def storage(tmp_path):
    s = Storage(f"sqlite:///{tmp_path / 'geata.db'}")
    init_db(s)
    yield s
    s.dispose()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def services(storage, settings):
    return build_services(storage, settings)


@pytest.fixture
def gate(services):
    """A device ``D`` plus a user ``U`` (not yet a member)."""
    services.devices.create("D", "Front Gate")
    user = services.users.create(name="Una", email="una@example.com")
    return "D", user.id


@pytest.fixture
def weekday_schedule(services):
    """Mon-Fri 08:00-18:00."""
    return services.schedules.create(
        "Office hours", "Weekdays only",
        [{"daysOfWeek": [1, 2, 3, 4, 5], "start": "08:00", "end": "18:00"}],
    )
