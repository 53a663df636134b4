import pytest

from roofdesk.models.claim import Claim, ClaimPhoto
from roofdesk.models.job import Job, JobState, JobType
from roofdesk.models.organization import Organization
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.vendor import Vendor
from roofdesk.services import analysis_cache
from roofdesk.services.packets import builder
from roofdesk.workers import tasks


@pytest.fixture
def worker_db(session_factory, storage, monkeypatch):
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)
    monkeypatch.setattr(builder, "PacketStorage", lambda: storage)
    monkeypatch.setattr(analysis_cache, "AnalysisCache", lambda: None)
    with session_factory() as session:
        session.add(Organization(id=1, name="Summit Roofing", slug="summit-roofing"))
        claim = Claim(id=1, org_id=1, claim_number="C000001", title="Hail claim", narratives={}, damage_summary={})
        claim.photos.append(ClaimPhoto(org_id=1, url="https://cdn.test/1.jpg"))
        claim.photos.append(ClaimPhoto(org_id=1, url="https://cdn.test/2.jpg", caption="Ridge"))
        session.add(claim)
        session.commit()
    return session_factory


def _job(sessions, job_type, **fields):
    with sessions() as session:
        job = Job(org_id=1, job_type=job_type, state=JobState.queued, created_by="u-admin", **fields)
        session.add(job)
        session.commit()
        return job.id


def _reload(sessions, job_id):
    with sessions() as session:
        job = session.get(Job, job_id)
        session.expunge(job)
        return job


def test_build_claim_packet_completes_job(worker_db, storage):
    job_id = _job(worker_db, JobType.build_packet, claim_id=1, params_json={"mode": "quick"})
    result = tasks.build_claim_packet(job_id)

    assert result["page_count"] == 4
    job = _reload(worker_db, job_id)
    assert job.state == JobState.completed
    assert job.progress == 1.0
    assert job.result_json["public_id"] == result["public_id"]
    assert len(storage.objects) == 1
    with worker_db() as session:
        assert session.query(GeneratedPacket).count() == 1


def test_build_claim_packet_fails_job_on_bad_sections(worker_db, storage):
    job_id = _job(worker_db, JobType.build_packet, claim_id=1, params_json={"sections": ["bogus"]})
    result = tasks.build_claim_packet(job_id)

    assert "bogus" in result["error"]
    job = _reload(worker_db, job_id)
    assert job.state == JobState.failed
    assert job.finished_at is not None
    assert storage.objects == {}


def test_missing_claim_fails_job(worker_db):
    job_id = _job(worker_db, JobType.build_packet, claim_id=999)
    assert tasks.build_claim_packet(job_id) == {"error": "Claim not found"}
    assert _reload(worker_db, job_id).error_message == "Claim not found"


def test_unknown_job_id_is_reported(worker_db):
    assert tasks.build_claim_packet(424242) == {"error": "Job not found"}


def test_analyze_claim_photos_stores_results(worker_db):
    job_id = _job(worker_db, JobType.analyze_damage, claim_id=1, params_json={})
    result = tasks.analyze_claim_photos(job_id)

    assert result["summary"]["analyzed_photos"] == 2
    assert result["summary"]["fallback_photos"] == 2
    with worker_db() as session:
        claim = session.get(Claim, 1)
        photos = sorted(claim.photos, key=lambda p: p.id)
        assert all(p.analysis_json["is_fallback"] for p in photos)
        assert photos[0].caption.startswith("Hail impact")
        assert photos[1].caption == "Ridge"
        assert "scope_bullets" in claim.damage_summary["fields"]
    assert _reload(worker_db, job_id).state == JobState.completed


def test_generate_claim_narratives_falls_back_without_keys(worker_db):
    job_id = _job(
        worker_db,
        JobType.generate_narratives,
        claim_id=1,
        params_json={"kinds": ["repair_justification", "contractor_summary"]},
    )
    result = tasks.generate_claim_narratives(job_id)

    assert result["kinds"] == ["repair_justification", "contractor_summary"]
    assert result["fallback"] == result["kinds"]
    with worker_db() as session:
        narratives = session.get(Claim, 1).narratives
        assert set(narratives) == {"repair_justification", "contractor_summary"}
        assert narratives["repair_justification"]["is_fallback"] is True


def test_sync_vendor_catalog_fails_job_without_feed(worker_db):
    with worker_db() as session:
        vendor = Vendor(org_id=1, slug="local", name="Local Supply")
        session.add(vendor)
        session.commit()
        vendor_id = vendor.id
    job_id = _job(worker_db, JobType.vendor_sync, vendor_id=vendor_id)

    result = tasks.sync_vendor_catalog(job_id)
    assert result == {"error": "Vendor has no feed_url"}
    assert _reload(worker_db, job_id).state == JobState.failed
