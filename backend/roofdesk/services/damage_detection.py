"""AI damage detection for roof photos.

Each photo goes to a vision model with a fixed prompt and JSON schema. Any
failure (no key, API error, unparseable JSON) falls back to the canned mock
analysis, marked ``is_fallback`` so downstream consumers can tell.
"""
from __future__ import annotations

import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from openai import OpenAI

from roofdesk.config import get_settings
from roofdesk.logging_config import get_logger
from roofdesk.services.analysis_cache import AnalysisCache

logger = get_logger(__name__)

SEVERITY_ORDER = ["low", "medium", "high", "critical"]

SEVERITY_COLORS: Dict[str, str] = {
    "low": "#22C55E",
    "medium": "#F59E0B",
    "high": "#EF4444",
    "critical": "#7C3AED",
}

DAMAGE_TYPES = [
    "hail_impact",
    "granule_loss",
    "wind_damage",
    "lifted_shingle",
    "missing_shingle",
    "cracked_shingle",
    "soft_metal_damage",
    "flashing_damage",
    "gutter_damage",
    "vent_damage",
]

SYSTEM_PROMPT = f"""You are an expert roofing damage assessor. Analyze the provided image and return a JSON object with:
- caption: A professional description of the damage visible (1-2 sentences)
- damages: Array of damage findings, each with:
  - damageType: string ({", ".join(DAMAGE_TYPES)})
  - severity: "low" | "medium" | "high" | "critical"
  - description: string
  - confidence: number 0-1
  - location: {{ x: 0-100, y: 0-100, width: 5-30, height: 5-30 }} (percentage of image)
- materials: Array of materials visible (e.g., "3-tab asphalt shingle", "metal flashing")
- overallCondition: Brief assessment of overall roof condition

Focus on: hail impacts, wind damage, missing/lifted shingles, granule loss, soft metal damage, flashing issues.
For each damage found, provide approximate location as percentage coordinates from top-left."""

USER_PROMPT = "Analyze this roofing photo for damage assessment. Include damage locations as percentage coordinates."

CACHE_NAMESPACE = "damage_photo"


@dataclass
class DamageFinding:
    damage_type: str
    severity: str
    description: str
    confidence: float
    location: Optional[Dict[str, float]] = None


@dataclass
class AnnotationBox:
    id: str
    type: str  # circle | box
    x: float
    y: float
    width: float
    height: float
    color: str
    label: str
    damage_type: str
    severity: str
    radius: Optional[float] = None


@dataclass
class PhotoAnalysis:
    caption: str
    damages: List[DamageFinding] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    overall_condition: str = ""
    annotations: List[AnnotationBox] = field(default_factory=list)
    photo_url: Optional[str] = None
    analyzed_at: Optional[str] = None
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchSummary:
    total_photos: int
    analyzed_photos: int
    failed_photos: int
    aggregated_damage_types: List[str]
    highest_severity: str
    overall_confidence: float
    processing_time_ms: int
    fallback_photos: int = 0


@dataclass
class BatchAnalysis:
    results: List[PhotoAnalysis]
    summary: BatchSummary


def _normalize_severity(value: Any) -> str:
    text = str(value or "").strip().lower()
    return text if text in SEVERITY_ORDER else "medium"


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


def _parse_location(raw: Any) -> Optional[Dict[str, float]]:
    if not isinstance(raw, dict):
        return None
    return {
        "x": _clamp(raw.get("x"), 0, 100, 50),
        "y": _clamp(raw.get("y"), 0, 100, 50),
        "width": _clamp(raw.get("width"), 1, 100, 10),
        "height": _clamp(raw.get("height"), 1, 100, 10),
    }


def parse_findings(raw_damages: Any) -> List[DamageFinding]:
    findings: List[DamageFinding] = []
    if not isinstance(raw_damages, list):
        return findings
    for item in raw_damages:
        if not isinstance(item, dict):
            continue
        damage_type = str(item.get("damageType") or item.get("damage_type") or "").strip().lower()
        if not damage_type:
            continue
        findings.append(
            DamageFinding(
                damage_type=damage_type,
                severity=_normalize_severity(item.get("severity")),
                description=str(item.get("description") or "").strip(),
                confidence=_clamp(item.get("confidence"), 0, 1, 0.5),
                location=_parse_location(item.get("location")),
            )
        )
    return findings


def generate_annotations(damages: List[DamageFinding]) -> List[AnnotationBox]:
    """Annotation overlays for findings that carry a location; hail gets circles."""
    boxes: List[AnnotationBox] = []
    located = [d for d in damages if d.location]
    for index, finding in enumerate(located, start=1):
        loc = finding.location or {}
        is_hail = "hail" in finding.damage_type
        width = loc.get("width", 10)
        boxes.append(
            AnnotationBox(
                id=f"annotation_{index}",
                type="circle" if is_hail else "box",
                x=loc.get("x", 50),
                y=loc.get("y", 50),
                width=width,
                height=loc.get("height", 10),
                radius=width / 2 if is_hail else None,
                color=SEVERITY_COLORS.get(finding.severity, SEVERITY_COLORS["medium"]),
                label=finding.damage_type.replace("_", " "),
                damage_type=finding.damage_type,
                severity=finding.severity,
            )
        )
    return boxes


def mock_photo_analysis(photo_url: Optional[str] = None) -> PhotoAnalysis:
    damages = [
        DamageFinding(
            damage_type="hail_impact",
            severity="medium",
            description="Multiple circular depressions consistent with hail strikes",
            confidence=0.89,
            location={"x": 30, "y": 40, "width": 8, "height": 8},
        ),
        DamageFinding(
            damage_type="granule_loss",
            severity="medium",
            description="Significant granule displacement exposing asphalt substrate",
            confidence=0.85,
            location={"x": 55, "y": 35, "width": 15, "height": 10},
        ),
    ]
    return PhotoAnalysis(
        caption="Hail impact damage visible on shingle surface with granule loss and bruising",
        damages=damages,
        materials=["3-tab asphalt shingle", "felt underlayment"],
        overall_condition="Moderate storm damage requiring professional assessment",
        annotations=generate_annotations(damages),
        photo_url=photo_url,
        analyzed_at=datetime.utcnow().isoformat(),
        is_fallback=True,
    )


def analysis_from_payload(payload: Dict[str, Any], photo_url: Optional[str]) -> PhotoAnalysis:
    damages = parse_findings(payload.get("damages"))
    materials = [str(m).strip() for m in payload.get("materials") or [] if str(m).strip()]
    return PhotoAnalysis(
        caption=str(payload.get("caption") or "").strip(),
        damages=damages,
        materials=materials,
        overall_condition=str(payload.get("overallCondition") or payload.get("overall_condition") or "").strip(),
        annotations=generate_annotations(damages),
        photo_url=photo_url,
        analyzed_at=datetime.utcnow().isoformat(),
    )


def analysis_from_dict(data: Dict[str, Any]) -> PhotoAnalysis:
    """Rehydrate a stored ``PhotoAnalysis.to_dict()`` payload."""
    damages = [DamageFinding(**d) for d in data.get("damages") or []]
    annotations = [AnnotationBox(**a) for a in data.get("annotations") or []]
    return PhotoAnalysis(
        caption=data.get("caption") or "",
        damages=damages,
        materials=list(data.get("materials") or []),
        overall_condition=data.get("overall_condition") or "",
        annotations=annotations,
        photo_url=data.get("photo_url"),
        analyzed_at=data.get("analyzed_at"),
        is_fallback=bool(data.get("is_fallback")),
    )


def highest_severity(damages: List[DamageFinding]) -> str:
    highest = "low"
    for finding in damages:
        if SEVERITY_ORDER.index(finding.severity) > SEVERITY_ORDER.index(highest):
            highest = finding.severity
    return highest


def severity_distribution(damages: List[DamageFinding]) -> Dict[str, int]:
    return {level: sum(1 for d in damages if d.severity == level) for level in SEVERITY_ORDER}


def generate_scope_bullets(damages: List[DamageFinding]) -> List[str]:
    severe_count = sum(1 for d in damages if d.severity in ("high", "critical"))
    bullets: List[str] = []

    if severe_count >= 3 or len(damages) > 5:
        bullets.append("Full roof replacement recommended due to widespread damage pattern")
    elif severe_count > 0:
        bullets.append("Partial roof repair with targeted replacement of damaged sections")
    else:
        bullets.append("Spot repairs recommended for isolated damage areas")

    if any("metal" in d.damage_type or "gutter" in d.damage_type for d in damages):
        bullets.append("Replace damaged soft metals including gutters, flashing, and vents")

    if severe_count > 0:
        bullets.append("Upgrade ice & water shield per IRC R905.2.7 requirements")

    bullets.append("Document all findings with photo evidence for insurance submission")
    return bullets


class DamageDetector:
    def __init__(self, client: Optional[OpenAI] = None, cache: Optional[AnalysisCache] = None) -> None:
        self._settings = get_settings()
        self._client = client
        if self._client is None and self._settings.openai_api_key:
            self._client = OpenAI(api_key=self._settings.openai_api_key)
        self._cache = cache

    def _call_vision(self, photo_url: str) -> Dict[str, Any]:
        response = self._client.chat.completions.create(
            model=self._settings.damage_vision_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": photo_url}},
                        {"type": "text", "text": USER_PROMPT},
                    ],
                },
            ],
            max_tokens=self._settings.damage_max_tokens,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("Vision model returned no content")
        payload = json.loads(content)
        if not isinstance(payload, dict):
            raise ValueError("Vision model returned non-object JSON")
        return payload

    def analyze_photo(self, photo_url: str) -> PhotoAnalysis:
        if self._client is None:
            logger.info("No OpenAI key configured - using mock analysis for %s", photo_url)
            return mock_photo_analysis(photo_url)

        if self._cache is not None:
            cached = self._cache.get_json(CACHE_NAMESPACE, photo_url)
            if isinstance(cached, dict):
                return analysis_from_dict(cached)

        started = time.perf_counter()
        try:
            payload = self._call_vision(photo_url)
        except Exception as exc:
            logger.error("Vision API error for %s: %s", photo_url, exc)
            return mock_photo_analysis(photo_url)

        analysis = analysis_from_payload(payload, photo_url)
        logger.info("Analyzed photo in %sms", int((time.perf_counter() - started) * 1000))
        if self._cache is not None:
            self._cache.set_json(
                CACHE_NAMESPACE,
                photo_url,
                analysis.to_dict(),
                self._settings.damage_cache_ttl_seconds,
            )
        return analysis

    def analyze_batch(
        self,
        photo_urls: List[str],
        *,
        max_concurrent: Optional[int] = None,
        max_photos: Optional[int] = None,
    ) -> BatchAnalysis:
        """Analyze photos in chunks of ``max_concurrent``, capped at ``max_photos``."""
        started = time.perf_counter()
        max_concurrent = max(1, int(max_concurrent or self._settings.damage_max_concurrent))
        max_photos = max(0, int(max_photos if max_photos is not None else self._settings.damage_max_photos))
        urls = list(photo_urls)[:max_photos]

        results: List[PhotoAnalysis] = []
        failed = 0
        with ThreadPoolExecutor(max_workers=max_concurrent) as pool:
            for offset in range(0, len(urls), max_concurrent):
                chunk = urls[offset:offset + max_concurrent]
                futures = [(url, pool.submit(self.analyze_photo, url)) for url in chunk]
                for url, future in futures:
                    try:
                        results.append(future.result())
                    except Exception as exc:
                        logger.error("Failed to analyze %s: %s", url, exc)
                        failed += 1

        all_damages = [d for r in results for d in r.damages]
        damage_types = list(dict.fromkeys(d.damage_type for d in all_damages))
        avg_confidence = (
            sum(d.confidence for d in all_damages) / len(all_damages) if all_damages else 0.0
        )
        summary = BatchSummary(
            total_photos=len(urls),
            analyzed_photos=len(results),
            failed_photos=failed,
            aggregated_damage_types=damage_types,
            highest_severity=highest_severity(all_damages),
            overall_confidence=round(avg_confidence, 2),
            processing_time_ms=int((time.perf_counter() - started) * 1000),
            fallback_photos=sum(1 for r in results if r.is_fallback),
        )
        return BatchAnalysis(results=results, summary=summary)


def _ai_field(value: Any, confidence: float, generated_at: str, is_fallback: bool) -> Dict[str, Any]:
    return {
        "value": value,
        "ai_generated": True,
        "approved": False,
        "source": "fallback" if is_fallback else "damage_detection",
        "confidence": confidence,
        "generated_at": generated_at,
    }


def build_damage_fields(analyses: List[PhotoAnalysis]) -> Dict[str, Any]:
    """Reviewable AI fields for the damage section of a claim."""
    generated_at = datetime.utcnow().isoformat()
    if not analyses:
        analyses = [mock_photo_analysis()]
    any_fallback = any(a.is_fallback for a in analyses)
    all_damages = [d for a in analyses for d in a.damages]

    fields: Dict[str, Any] = {}
    for index, analysis in enumerate(analyses, start=1):
        fields[f"caption_{index}"] = _ai_field(analysis.caption, 0.9, generated_at, analysis.is_fallback)

    fields["damage_types"] = _ai_field(
        list(dict.fromkeys(d.damage_type for d in all_damages)), 0.88, generated_at, any_fallback
    )
    fields["scope_bullets"] = _ai_field(generate_scope_bullets(all_damages), 0.87, generated_at, any_fallback)
    fields["materials"] = _ai_field(
        list(dict.fromkeys(m for a in analyses for m in a.materials)), 0.85, generated_at, any_fallback
    )
    fields["annotations"] = _ai_field(
        [asdict(box) for a in analyses for box in a.annotations], 0.82, generated_at, any_fallback
    )
    fields["severity_distribution"] = _ai_field(
        severity_distribution(all_damages), 0.9, generated_at, any_fallback
    )
    return fields
