from __future__ import annotations

from pathlib import Path
import runpy

import uvicorn

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "api.py"


def test_api_script_serves_admin_app(monkeypatch, capsys) -> None:
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr("sys.argv", ["api.py", "--port", "9100", "--reload"])
    monkeypatch.delenv("API_HOST", raising=False)

    runpy.run_path(str(SCRIPT))["main"]()

    app, kwargs = calls[0]
    assert app == "api.main:app"
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9100
    assert kwargs["reload"] is True
    assert "[api] host=127.0.0.1 port=9100" in capsys.readouterr().out
