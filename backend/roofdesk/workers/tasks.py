from dataclasses import asdict
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from roofdesk.config import get_settings
from roofdesk.logging_config import get_logger
from roofdesk.models.claim import Claim, ClaimPhoto
from roofdesk.models.job import Job, JobState
from roofdesk.models.vendor import Vendor
from roofdesk.workers.celery_app import celery_app

logger = get_logger(__name__)

# Sync engine for Celery workers (Celery doesn't support async)
settings = get_settings()
sync_engine = create_engine(settings.database_url_sync, echo=settings.debug)
SessionLocal = sessionmaker(bind=sync_engine)


def _start_job(db, job_id: int):
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        return None
    job.state = JobState.running
    job.started_at = datetime.utcnow()
    job.progress = 0.0
    db.commit()
    return job


def _fail_job(db, job: Job, message: str) -> dict:
    db.rollback()
    job.state = JobState.failed
    job.error_message = message
    job.finished_at = datetime.utcnow()
    db.commit()
    logger.error("Job %s (%s) failed: %s", job.id, job.job_type.value, message)
    return {"error": message}


def _complete_job(db, job: Job, result: dict) -> dict:
    job.state = JobState.completed
    job.result_json = result
    job.progress = 1.0
    job.progress_message = "Done"
    job.finished_at = datetime.utcnow()
    db.commit()
    return result


def _load_claim(db, job: Job):
    return (
        db.query(Claim)
        .filter(Claim.id == job.claim_id, Claim.org_id == job.org_id, Claim.deleted_at.is_(None))
        .first()
    )


@celery_app.task(name="roofdesk.workers.tasks.build_claim_packet")
def build_claim_packet(job_id: int):
    """Render the claim packet PDF, upload it, and record the packet row."""
    from roofdesk.services.packets.builder import generate_packet

    db = SessionLocal()
    try:
        job = _start_job(db, job_id)
        if not job:
            return {"error": "Job not found"}

        claim = _load_claim(db, job)
        if not claim:
            return _fail_job(db, job, "Claim not found")

        params = job.params_json or {}
        try:
            packet = generate_packet(
                db,
                claim,
                sections=params.get("sections"),
                mode=params.get("mode"),
                org_template_id=params.get("org_template_id"),
                created_by=job.created_by,
            )
        except Exception as e:
            return _fail_job(db, job, str(e))

        return _complete_job(
            db,
            job,
            {
                "packet_id": packet.id,
                "public_id": packet.public_id,
                "page_count": packet.page_count,
                "size_bytes": packet.size_bytes,
                "url": packet.url,
            },
        )
    finally:
        db.close()


@celery_app.task(name="roofdesk.workers.tasks.analyze_claim_photos")
def analyze_claim_photos(job_id: int):
    """Run damage detection over a claim's photos and store per-photo and claim-level results."""
    from roofdesk.services.analysis_cache import AnalysisCache
    from roofdesk.services.damage_detection import DamageDetector, build_damage_fields

    db = SessionLocal()
    try:
        job = _start_job(db, job_id)
        if not job:
            return {"error": "Job not found"}

        claim = _load_claim(db, job)
        if not claim:
            return _fail_job(db, job, "Claim not found")

        params = job.params_json or {}
        query = db.query(ClaimPhoto).filter(ClaimPhoto.claim_id == claim.id)
        if params.get("photo_ids"):
            query = query.filter(ClaimPhoto.id.in_(params["photo_ids"]))
        photos = query.order_by(ClaimPhoto.id).all()
        if not photos:
            return _fail_job(db, job, "Claim has no photos to analyze")

        job.progress_message = f"Analyzing {len(photos)} photos"
        db.commit()

        try:
            detector = DamageDetector(cache=AnalysisCache())
            batch = detector.analyze_batch([photo.url for photo in photos])

            by_url = {result.photo_url: result for result in batch.results}
            analyzed_at = datetime.utcnow()
            for photo in photos:
                analysis = by_url.get(photo.url)
                if analysis is None:
                    continue
                photo.analysis_json = analysis.to_dict()
                photo.analyzed_at = analyzed_at
                if not photo.caption:
                    photo.caption = analysis.caption

            claim.damage_summary = {
                "fields": build_damage_fields(batch.results),
                "summary": asdict(batch.summary),
                "analyzed_at": analyzed_at.isoformat(),
            }
            db.commit()
        except Exception as e:
            return _fail_job(db, job, str(e))

        return _complete_job(db, job, {"summary": asdict(batch.summary)})
    finally:
        db.close()


@celery_app.task(name="roofdesk.workers.tasks.generate_claim_narratives")
def generate_claim_narratives(job_id: int):
    """Write claim narratives through the LLM routes; template text when every route fails."""
    from roofdesk.services.claim_folder import assemble_claim_folder
    from roofdesk.services.narratives import generate_claim_narratives as write_narratives

    db = SessionLocal()
    try:
        job = _start_job(db, job_id)
        if not job:
            return {"error": "Job not found"}

        claim = _load_claim(db, job)
        if not claim:
            return _fail_job(db, job, "Claim not found")

        params = job.params_json or {}
        try:
            folder = assemble_claim_folder(claim)
            narratives = write_narratives(folder, kinds=params.get("kinds"))
            merged = dict(claim.narratives or {})
            merged.update(narratives)
            claim.narratives = merged
            db.commit()
        except Exception as e:
            return _fail_job(db, job, str(e))

        return _complete_job(
            db,
            job,
            {
                "kinds": list(narratives),
                "fallback": [kind for kind, entry in narratives.items() if entry["is_fallback"]],
            },
        )
    finally:
        db.close()


@celery_app.task(name="roofdesk.workers.tasks.sync_vendor_catalog")
def sync_vendor_catalog(job_id: int):
    """Manual catalog sync for one vendor."""
    from roofdesk.services.vendor_sync import sync_vendor

    db = SessionLocal()
    try:
        job = _start_job(db, job_id)
        if not job:
            return {"error": "Job not found"}

        vendor = db.query(Vendor).filter(Vendor.id == job.vendor_id).first()
        if not vendor:
            return _fail_job(db, job, "Vendor not found")

        result = sync_vendor(db, vendor)
        if result.status != "success":
            return _fail_job(db, job, result.error or "Vendor sync failed")
        return _complete_job(db, job, asdict(result))
    finally:
        db.close()


@celery_app.task(name="roofdesk.workers.tasks.sync_vendor_catalogs")
def sync_vendor_catalogs():
    """Nightly sync for every vendor flagged auto_sync."""
    from roofdesk.services.vendor_sync import sync_all_vendors

    db = SessionLocal()
    try:
        summary = sync_all_vendors(db)
        return asdict(summary)
    finally:
        db.close()
