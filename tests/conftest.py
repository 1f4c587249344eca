from __future__ import annotations

import shutil
import sys
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# uv/pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from ledger.core.config import Config  # noqa: E402
from ledger.core.database import Database  # noqa: E402
from ledger.core.notifications import NotificationSink  # noqa: E402
from ledger.core.permissions import Role, RoleDirectory  # noqa: E402
from ledger.custody.token_ledger import TokenLedger  # noqa: E402
from ledger.insurance.pricing import FlatRatePremium  # noqa: E402
from ledger.insurance.workflow import InsuranceWorkflow  # noqa: E402
from tests.unit._ledger_helpers import ADMIN, COVER_AUDITOR, INSURANCE_AUDITOR, PROVIDER  # noqa: E402


class FakeClock:
    """Settable clock. Operations read it once each."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Config fixture that points data_dir to a temp directory."""

    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(REPO_ROOT / "config" / "default.yaml", cfg_dst_dir / "default.yaml")

    c = Config.from_yaml(cfg_dst_dir / "default.yaml")
    return c.model_copy(update={"data_dir": temp_dir / "data", "config_dir": cfg_dst_dir})


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, tzinfo=UTC))


@pytest.fixture()
def db(temp_dir: Path) -> Iterator[Database]:
    database = Database(temp_dir / "ledger.db")
    try:
        yield database
    finally:
        database.close()


@pytest.fixture()
def roles(db: Database, clock: FakeClock) -> RoleDirectory:
    directory = RoleDirectory(db, clock=clock)
    directory.bootstrap(ADMIN)
    directory.grant_role(ADMIN, Role.LIQUIDITY_PROVIDER, PROVIDER)
    directory.grant_role(ADMIN, Role.INSURANCE_AUDITOR, INSURANCE_AUDITOR)
    directory.grant_role(ADMIN, Role.COVER_AUDITOR, COVER_AUDITOR)
    return directory


@pytest.fixture()
def custody(db: Database, test_config: Config) -> TokenLedger:
    return TokenLedger(db, custody_address=test_config.ledger.custody_address)


@pytest.fixture()
def sink() -> NotificationSink:
    return NotificationSink()


@pytest.fixture()
def workflow(
    db: Database,
    roles: RoleDirectory,
    custody: TokenLedger,
    test_config: Config,
    sink: NotificationSink,
    clock: FakeClock,
) -> InsuranceWorkflow:
    return InsuranceWorkflow(
        db,
        roles=roles,
        custody=custody,
        config=test_config.ledger,
        premium_model=FlatRatePremium(rate_bps=200),
        sink=sink,
        clock=clock,
    )
