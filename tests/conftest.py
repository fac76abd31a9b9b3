import os
import sys
import tempfile
from pathlib import Path

import pytest

_TMP_HOME = Path(tempfile.mkdtemp(prefix="steerflux-tests-"))
os.environ.setdefault("STEERFLUX_API_URL", "http://api.test/api")
os.environ.setdefault("STEERFLUX_TOKEN_FILE", str(_TMP_HOME / "credentials.json"))
os.environ.setdefault("STEERFLUX_LOG_FILE", str(_TMP_HOME / "steerflux_history.log"))
os.environ.setdefault("STEERFLUX_LOG_TO_CONSOLE", "false")


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from steerflux.domain.credentials import CredentialPair  # noqa: E402
from steerflux.infrastructure.credential_store import InMemoryCredentialStore  # noqa: E402
from tests.http_stubs import FakeTransport  # noqa: E402


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(CredentialPair("A1", "R1"))
