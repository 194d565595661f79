import httpx
import pytest
from apscheduler.jobstores.base import JobLookupError

from linksaver import create_app
from linksaver.client import LinkSaverClient
from linksaver.config import TestConfig
from linksaver.extensions import db
from linksaver.services.metadata import LinkMetadata, fallback_metadata


class ManualScheduler:
    """Scheduler stand-in whose date jobs only run when the test says so."""

    running = True

    def __init__(self):
        self.jobs = {}

    def add_job(self, func, trigger=None, args=None, kwargs=None, id=None, **options):
        self.jobs[id] = (func, list(args or []), dict(kwargs or {}))

    def remove_job(self, job_id, jobstore=None):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def run_pending(self):
        jobs = list(self.jobs.values())
        self.jobs.clear()
        for func, args, kwargs in jobs:
            func(*args, **kwargs)

    def shutdown(self, wait=True):
        self.jobs.clear()


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def pages(monkeypatch):
    """Offline metadata: tests map URLs to metadata, anything else falls back."""
    known: dict[str, LinkMetadata] = {}

    def _resolve(url, **kwargs):
        return known.get(url) or fallback_metadata(url)

    monkeypatch.setattr("linksaver.services.ingestion.resolve_metadata", _resolve)
    return known


@pytest.fixture
def make_user(client):
    def _make(username: str, password: str = "secret"):
        response = client.post(
            "/api/auth/register", json={"username": username, "password": password}
        )
        assert response.status_code == 201
        response = client.post(
            "/api/auth/token",
            json={"username": username, "password": password, "token_name": "pytest"},
        )
        assert response.status_code == 200
        return {"Authorization": f"Bearer {response.get_json()['token']}"}

    return _make


@pytest.fixture
def auth(make_user):
    return make_user("alice")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def sent_requests():
    return []


@pytest.fixture
def api(app, sent_requests):
    client = LinkSaverClient(
        "http://testserver",
        transport=httpx.WSGITransport(app=app),
        event_hooks={"request": [sent_requests.append]},
    )
    client.register("carol", "secret")
    client.login("carol", "secret")
    sent_requests.clear()
    yield client
    client.close()
