"""grb test configuration."""
import sys
import pytest
from pathlib import Path

# Ensure grb package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakeClipboard:
    """In-memory clipboard; set ``fail_reads``/``fail_writes`` to simulate errors."""

    def __init__(self, text=""):
        self.text = text
        self.writes = []
        self.fail_reads = False
        self.fail_writes = False

    def read(self):
        from grb.errors import ClipboardError
        if self.fail_reads:
            raise ClipboardError("clipboard unavailable")
        return self.text

    def write(self, text):
        from grb.errors import ClipboardError
        if self.fail_writes:
            raise ClipboardError("clipboard unavailable")
        self.text = text
        self.writes.append(text)


@pytest.fixture
def tmp_grb_dir(tmp_path, monkeypatch):
    """Create a temporary GRB_HOME for testing."""
    grb_dir = tmp_path / ".grb"
    grb_dir.mkdir()
    monkeypatch.setenv("GRB_HOME", str(grb_dir))
    yield grb_dir


@pytest.fixture
def db_path(tmp_grb_dir):
    return tmp_grb_dir / "test.db"


@pytest.fixture
def store(db_path):
    """Create a fresh SnippetStore for testing."""
    from grb.sqlite_store import SnippetStore
    s = SnippetStore(db_path=db_path)
    yield s
    s.close()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def ops(store, clipboard):
    from grb.mutations import MutationOps
    return MutationOps(store, clipboard=clipboard)


@pytest.fixture
def queries(store):
    from grb.queries import QueryEngine
    return QueryEngine(store)
