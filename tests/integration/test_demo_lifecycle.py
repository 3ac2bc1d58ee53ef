"""
End-to-end run of scripts/demo_lifecycle.py against a fresh SQLite file.
"""

import importlib.util
import sys
from pathlib import Path

import pytest

from assignx_kernel.db.engine import reset_engine

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "demo_lifecycle.py"


@pytest.fixture
def demo(monkeypatch):
    monkeypatch.delenv("ASSIGNX_CONFIG", raising=False)
    spec = importlib.util.spec_from_file_location("demo_lifecycle", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    yield module
    reset_engine()


class TestDemoScript:

    def _run(self, demo, monkeypatch, tmp_path, *flags):
        db = tmp_path / "demo.db"
        monkeypatch.setattr(sys, "argv", ["demo_lifecycle.py", "--db", str(db), *flags])
        assert demo.main() == 0
        return db

    def test_client_acceptance_path(self, demo, monkeypatch, tmp_path, capsys):
        db = self._run(demo, monkeypatch, tmp_path)
        out = capsys.readouterr().out

        assert db.exists()
        assert "client price: Rs.1500.00" in out
        assert "doer payout: Rs.975.00" in out
        assert "final status: completed" in out
        assert "qc_rejected" in out
        assert "settled" in out

    def test_auto_approval_path(self, demo, monkeypatch, tmp_path, capsys):
        self._run(demo, monkeypatch, tmp_path, "--auto-approve")
        out = capsys.readouterr().out

        assert "auto-approved: 1" in out
        assert "deadline_elapsed" in out
