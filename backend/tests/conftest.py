import os
import tempfile
from datetime import datetime
from types import SimpleNamespace

_TEST_DB = os.path.join(tempfile.mkdtemp(prefix="roofdesk-tests-"), "default.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["DATABASE_URL_SYNC"] = f"sqlite:///{_TEST_DB}"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["STAGE_RETRY_BACKOFF_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from roofdesk.api import deps
from roofdesk.models import Base
from roofdesk.models.base import get_db
from roofdesk.models.claim import Claim, ClaimEvent, ClaimLineItem, ClaimPhoto, ClaimSignature
from roofdesk.models.crm import Contact, Property
from roofdesk.models.organization import Organization, OrgMember, TeamRole


class FakeStorage:
    """In-memory stand-in for the S3 client behind ``PacketStorage``."""

    def __init__(self):
        self.objects = {}
        self.bucket = "test-bucket"

    def packet_key(self, org_id, claim_id, public_id):
        return f"packets/{org_id}/{claim_id}/{public_id}.pdf"

    def put_pdf(self, key, data, *, filename):
        self.objects[key] = {"data": data, "filename": filename}

    def presigned_url(self, key, expires_in=None):
        return f"https://storage.test/{key}?ttl={expires_in or 604800}"


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def claim_factory():
    """Build an unsaved claim with related rows attached in memory."""

    def build(state="TX", photos=0, line_items=0, narratives=None, signatures=(), events=0, **fields):
        contact = Contact(first_name="Dana", last_name="Reyes")
        prop = Property(
            street="12 Oak St", city="Austin", state=state, zip_code="78701", roof_type="Architectural"
        )
        values = dict(
            id=1,
            org_id=1,
            claim_number="C000001",
            title="Hail claim",
            carrier="Acme Mutual",
            date_of_loss=datetime(2026, 4, 2),
            storm_type="hail",
            hail_size="1.5 inch",
            weather_verified=True,
            narratives=narratives or {},
            damage_summary={},
        )
        values.update(fields)
        claim = Claim(**values)
        claim.contact = contact
        claim.property = prop
        for i in range(photos):
            claim.photos.append(
                ClaimPhoto(
                    id=i + 1,
                    org_id=1,
                    url=f"https://cdn.test/{i}.jpg",
                    created_at=datetime(2026, 4, 3, 9, i),
                    analysis_json={
                        "caption": f"AI caption {i}",
                        "damages": [{"damage_type": "hail_impact", "severity": "medium"}],
                        "annotations": [],
                    },
                )
            )
        for i in range(line_items):
            claim.line_items.append(ClaimLineItem(description=f"Item {i}", quantity=1, unit_price=10.0))
        for role in signatures:
            claim.signatures.append(
                ClaimSignature(signer_name=role.title(), signer_role=role, signed_at=datetime(2026, 4, 5))
            )
        for i in range(events):
            claim.events.append(
                ClaimEvent(occurred_at=datetime(2026, 4, 3 + i), event=f"Event {i}", category="inspection")
            )
        return claim

    return build


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "roofdesk.db"


@pytest.fixture
def session_factory(db_path):
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def sync_db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _seed_orgs(session_factory):
    with session_factory() as session:
        summit = Organization(id=1, name="Summit Roofing", slug="summit-roofing")
        other = Organization(id=2, name="Other Co", slug="other-co")
        session.add_all([summit, other])
        session.flush()
        for role in TeamRole:
            session.add(OrgMember(org_id=1, user_id=f"u-{role.value}", role=role))
        session.add(OrgMember(org_id=2, user_id="u-other", role=TeamRole.admin))
        session.commit()


@pytest.fixture
def api(db_path, session_factory, storage, monkeypatch):
    """TestClient wired to a per-test sqlite file, fake storage and a recording job dispatcher."""
    from roofdesk.main import app

    _seed_orgs(session_factory)
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with maker() as session:
            yield session

    dispatched = []
    monkeypatch.setattr(deps, "dispatch_job", lambda job: dispatched.append((job.id, job.job_type.value)))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_storage] = lambda: storage

    def headers(role="admin", org_id=1, user_id=None):
        return {"X-Org-Id": str(org_id), "X-User-Id": user_id or f"u-{role}"}

    yield SimpleNamespace(
        client=TestClient(app, raise_server_exceptions=False),
        headers=headers,
        dispatched=dispatched,
        storage=storage,
        sessions=session_factory,
    )
    app.dependency_overrides.clear()
