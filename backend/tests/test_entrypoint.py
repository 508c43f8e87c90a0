import uvicorn

import main
from tests.conftest import make_settings


def test_main_serves_app_with_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    main.main(make_settings(host="127.0.0.1", port=9001, log_level="DEBUG"))

    assert calls == [("main:app", {"host": "127.0.0.1", "port": 9001, "log_level": "debug"})]
