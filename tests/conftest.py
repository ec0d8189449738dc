import pytest

from telemetry.app import create_app
from telemetry.config import Config
from telemetry.log_store import LogStore


@pytest.fixture
def sample_payload():
    return {
        "timestamp": "15/01/2026, 10:30:00",
        "message": "TypeError: x is undefined",
        "source": "app.js",
        "context": "render",
        "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
        "url": "https://player.example.com/live",
        "dns": "https://iptv.example.com:8080",
        "cors": True,
        "https": False,
        "stack": "TypeError: x is undefined\n    at render (app.js:10:5)\n    at main (app.js:2:1)",
    }


@pytest.fixture
def config(tmp_path):
    return Config(log_dir=str(tmp_path / "logs"))


@pytest.fixture
def store(config):
    return LogStore(config)


@pytest.fixture
def app(config):
    """Create a Flask test app writing into a temporary log directory."""
    application = create_app(config)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
