"""Claim folder assembly.

A claim folder is everything a packet renders from: cover sheet, weather,
inspection, annotated photos, code citations, scope pricing, narratives,
timeline, signatures and a checklist, plus a readiness score. Assembly works
on an already-loaded ``Claim`` (relationships reachable), so the async API
and the sync workers share it.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from roofdesk.models.claim import Claim

COLD_CLIMATE_STATES = {"MN", "WI", "MI", "ND", "SD", "MT", "ME", "NH", "VT", "NY"}

BASE_CODES = [
    {
        "code": "IRC R905.2.3",
        "title": "Deck Requirements",
        "requirement": "Solid or closely fitted deck required",
        "category": "other",
    },
    {
        "code": "IRC R905.2.7",
        "title": "Underlayment",
        "requirement": "Underlayment required on entire roof deck",
        "category": "underlayment",
    },
    {
        "code": "IRC R905.2.8.5",
        "title": "Drip Edge",
        "requirement": "Drip edge required at eaves and rakes",
        "category": "drip_edge",
    },
]

ICE_BARRIER_CODE = {
    "code": "IRC R905.2.7.1",
    "title": "Ice Barrier",
    "requirement": "Ice barrier required in areas subject to ice damming",
    "category": "ice_water",
}

LABOR_RATE = 0.4
REMOVAL_RATE = 0.15
ACCESSORIES_RATE = 0.1
OVERHEAD_PROFIT_RATE = 0.2

READINESS_MAX = {
    "weather": 15,
    "photos": 20,
    "codes": 15,
    "scope": 20,
    "narratives": 15,
    "signatures": 10,
    "timeline": 5,
}

NARRATIVE_KEYS = ("repair_justification", "contractor_summary", "adjuster_cover_letter")


@dataclass
class CoverSheet:
    property_address: str
    policyholder_name: str
    claim_number: str
    date_of_loss: Optional[datetime]
    carrier: Optional[str]
    policy_number: Optional[str]
    adjuster_name: Optional[str]
    contractor_name: str
    prepared_by: str
    generated_at: datetime


@dataclass
class WeatherCauseOfLoss:
    storm_type: Optional[str]
    hail_size: Optional[str]
    wind_speed: Optional[float]
    summary: Optional[str]
    verified: bool = False


@dataclass
class InspectionOverview:
    inspection_date: Optional[datetime]
    inspector_name: str
    roof_type: str
    roof_pitch: Optional[str]
    roof_age: Optional[int]
    overall_condition: str
    notes: Optional[str]


@dataclass
class FolderPhoto:
    id: int
    url: str
    caption: Optional[str]
    ai_caption: Optional[str]
    elevation: Optional[str]
    damages: List[Dict[str, Any]] = field(default_factory=list)
    annotations: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ScopePricing:
    line_items: List[Dict[str, Any]]
    subtotal: float
    labor_total: float
    removal_total: float
    accessories_total: float
    overhead_profit_percentage: int
    overhead_profit_amount: float
    grand_total: float


@dataclass
class ChecklistItem:
    section: str
    item: str
    complete: bool
    required: bool = True


@dataclass
class ReadinessCategory:
    score: int
    max_score: int
    status: str  # complete | partial | missing


@dataclass
class ReadinessBreakdown:
    categories: Dict[str, ReadinessCategory]
    overall: int
    grade: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClaimFolder:
    claim_id: int
    org_id: int
    cover_sheet: CoverSheet
    weather: Optional[WeatherCauseOfLoss]
    inspection: InspectionOverview
    photos: List[FolderPhoto]
    codes: List[Dict[str, Any]]
    ice_water_shield_required: bool
    scope: Optional[ScopePricing]
    narratives: Dict[str, str]
    executive_summary: Optional[str]
    damage_summary: Dict[str, Any]
    timeline: List[Dict[str, Any]]
    signatures: List[Dict[str, Any]]
    checklist: List[ChecklistItem] = field(default_factory=list)
    readiness: Optional[ReadinessBreakdown] = None
    branding: Dict[str, Any] = field(default_factory=dict)


def build_code_compliance(state: Optional[str]) -> List[Dict[str, Any]]:
    codes = [dict(code, citation=code["code"], source="irc") for code in BASE_CODES]
    if (state or "").strip().upper() in COLD_CLIMATE_STATES:
        codes.append(dict(ICE_BARRIER_CODE, citation=ICE_BARRIER_CODE["code"], source="irc"))
    return codes


def build_scope_pricing(line_items) -> Optional[ScopePricing]:
    items = list(line_items or [])
    if not items:
        return None
    rows = [
        {
            "code": item.code or "",
            "description": item.description,
            "quantity": float(item.quantity or 0),
            "unit": item.unit or "EA",
            "unit_price": float(item.unit_price or 0),
            "total": item.total,
            "category": item.category or "general",
        }
        for item in items
    ]
    subtotal = round(sum(row["total"] for row in rows), 2)
    return ScopePricing(
        line_items=rows,
        subtotal=subtotal,
        labor_total=round(subtotal * LABOR_RATE, 2),
        removal_total=round(subtotal * REMOVAL_RATE, 2),
        accessories_total=round(subtotal * ACCESSORIES_RATE, 2),
        overhead_profit_percentage=int(OVERHEAD_PROFIT_RATE * 100),
        overhead_profit_amount=round(subtotal * OVERHEAD_PROFIT_RATE, 2),
        grand_total=round(subtotal * (1 + OVERHEAD_PROFIT_RATE), 2),
    )


def _narrative_text(narratives: Dict[str, Any], key: str) -> Optional[str]:
    entry = (narratives or {}).get(key)
    if isinstance(entry, dict):
        text = entry.get("text")
    else:
        text = entry
    text = str(text or "").strip()
    return text or None


def _grade(overall: int) -> str:
    if overall >= 90:
        return "A"
    if overall >= 80:
        return "B"
    if overall >= 70:
        return "C"
    if overall >= 60:
        return "D"
    return "F"


def _category(name: str, score: int, complete: bool) -> ReadinessCategory:
    if score == 0:
        status = "missing"
    elif complete:
        status = "complete"
    else:
        status = "partial"
    return ReadinessCategory(score=score, max_score=READINESS_MAX[name], status=status)


def calculate_readiness_score(folder: ClaimFolder) -> ReadinessBreakdown:
    cats: Dict[str, ReadinessCategory] = {}

    if folder.weather and folder.weather.verified:
        cats["weather"] = _category("weather", 15, True)
    elif folder.weather:
        cats["weather"] = _category("weather", 8, False)
    else:
        cats["weather"] = _category("weather", 0, False)

    photo_count = len(folder.photos)
    if photo_count >= 10:
        cats["photos"] = _category("photos", 20, True)
    elif photo_count >= 5:
        cats["photos"] = _category("photos", 12, False)
    else:
        cats["photos"] = _category("photos", 5 if photo_count else 0, False)

    code_count = len(folder.codes)
    cats["codes"] = _category("codes", 15 if code_count >= 5 else (8 if code_count else 0), code_count >= 5)

    line_count = len(folder.scope.line_items) if folder.scope else 0
    cats["scope"] = _category("scope", 20 if line_count >= 10 else (10 if line_count else 0), line_count >= 10)

    justification = folder.narratives.get("repair_justification")
    summary = folder.narratives.get("contractor_summary")
    cover_letter = folder.narratives.get("adjuster_cover_letter")
    if justification and summary and cover_letter:
        cats["narratives"] = _category("narratives", 15, True)
    else:
        cats["narratives"] = _category("narratives", 8 if (justification or summary) else 0, False)

    sig_count = len(folder.signatures)
    cats["signatures"] = _category("signatures", 10 if sig_count >= 2 else (5 if sig_count else 0), sig_count >= 2)

    event_count = len(folder.timeline)
    cats["timeline"] = _category("timeline", 5 if event_count >= 3 else (3 if event_count else 0), event_count >= 3)

    total = sum(c.score for c in cats.values())
    maximum = sum(c.max_score for c in cats.values())
    overall = round(100 * total / maximum)

    if cats["weather"].status == "missing":
        recommendation = "Add weather verification to improve claim strength."
    elif cats["photos"].status != "complete":
        recommendation = "Upload more photos to document damage thoroughly."
    elif cats["narratives"].status != "complete":
        recommendation = "Generate repair justification and contractor summary."
    elif overall >= 90:
        recommendation = "Your folder is carrier-ready!"
    else:
        recommendation = "Complete missing sections to strengthen your claim."

    return ReadinessBreakdown(categories=cats, overall=overall, grade=_grade(overall), recommendation=recommendation)


def _timeline(claim: Claim) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    if claim.date_of_loss:
        events.append(
            {"date": claim.date_of_loss, "event": "Date of Loss", "category": "loss", "details": "Storm event occurred"}
        )
    if claim.created_at:
        events.append({"date": claim.created_at, "event": "Claim Created", "category": "claim", "details": None})
    for event in claim.events or []:
        events.append(
            {
                "date": event.occurred_at,
                "event": event.event,
                "category": event.category or "other",
                "details": event.details,
            }
        )
    events.sort(key=lambda e: e["date"] or datetime.min)
    return events


def _photos(claim: Claim) -> List[FolderPhoto]:
    photos = []
    for photo in sorted(claim.photos or [], key=lambda p: (p.created_at or datetime.min, p.id or 0)):
        analysis = photo.analysis_json or {}
        photos.append(
            FolderPhoto(
                id=photo.id,
                url=photo.url,
                caption=photo.caption,
                ai_caption=analysis.get("caption"),
                elevation=photo.elevation,
                damages=list(analysis.get("damages") or []),
                annotations=list(analysis.get("annotations") or []),
            )
        )
    return photos


def _checklist(folder: ClaimFolder) -> List[ChecklistItem]:
    roles = {s.get("signer_role") for s in folder.signatures}
    has_property = folder.cover_sheet.property_address != "Address not available"
    return [
        ChecklistItem("Cover Sheet", "Property info complete", has_property),
        ChecklistItem("Weather", "Weather verification", bool(folder.weather and folder.weather.verified)),
        ChecklistItem("Photos", "Damage photos uploaded", bool(folder.photos)),
        ChecklistItem("Codes", "Code citations generated", bool(folder.codes)),
        ChecklistItem("Scope", "Line items defined", folder.scope is not None),
        ChecklistItem("Narratives", "Repair justification written", "repair_justification" in folder.narratives),
        ChecklistItem("Signatures", "Homeowner signature", "homeowner" in roles, required=False),
        ChecklistItem("Signatures", "Contractor signature", "contractor" in roles, required=False),
    ]


def assemble_claim_folder(claim: Claim, branding: Optional[Dict[str, Any]] = None) -> ClaimFolder:
    branding = dict(branding or {})
    prop = claim.property
    contact = claim.contact

    policyholder = claim.insured_name or (contact.full_name if contact else None) or "Not specified"
    cover = CoverSheet(
        property_address=prop.address_line if prop else (claim.title or "Address not available"),
        policyholder_name=policyholder,
        claim_number=claim.claim_number,
        date_of_loss=claim.date_of_loss,
        carrier=claim.carrier,
        policy_number=claim.policy_number,
        adjuster_name=claim.adjuster_name,
        contractor_name=branding.get("company_name") or "Roofing Contractor",
        prepared_by=branding.get("prepared_by") or claim.created_by or "Roofing Contractor",
        generated_at=datetime.utcnow(),
    )

    weather = None
    if claim.storm_type or claim.weather_summary or claim.hail_size or claim.wind_speed:
        weather = WeatherCauseOfLoss(
            storm_type=claim.storm_type,
            hail_size=claim.hail_size,
            wind_speed=claim.wind_speed,
            summary=claim.weather_summary,
            verified=bool(claim.weather_verified),
        )

    inspection = InspectionOverview(
        inspection_date=claim.inspection_date or claim.created_at,
        inspector_name=claim.inspector_name or "Not specified",
        roof_type=(prop.roof_type if prop and prop.roof_type else "Asphalt Shingle"),
        roof_pitch=prop.roof_pitch if prop else None,
        roof_age=prop.roof_age if prop else None,
        overall_condition=claim.overall_condition or "fair",
        notes=claim.description,
    )

    state = prop.state if prop else None
    codes = build_code_compliance(state)
    narratives = {key: text for key in NARRATIVE_KEYS if (text := _narrative_text(claim.narratives, key))}

    folder = ClaimFolder(
        claim_id=claim.id,
        org_id=claim.org_id,
        cover_sheet=cover,
        weather=weather,
        inspection=inspection,
        photos=_photos(claim),
        codes=codes,
        ice_water_shield_required=(state or "").strip().upper() in COLD_CLIMATE_STATES,
        scope=build_scope_pricing(claim.line_items),
        narratives=narratives,
        executive_summary=_narrative_text(claim.narratives, "executive_summary"),
        damage_summary=dict(claim.damage_summary or {}),
        timeline=_timeline(claim),
        signatures=[
            {"signer_name": s.signer_name, "signer_role": s.signer_role, "signed_at": s.signed_at}
            for s in claim.signatures or []
        ],
        branding=branding,
    )
    folder.checklist = _checklist(folder)
    folder.readiness = calculate_readiness_score(folder)
    return folder
