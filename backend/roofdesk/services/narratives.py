"""Claim narratives written by the LLM orchestrator, with template fallbacks."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from roofdesk.config import get_settings
from roofdesk.logging_config import get_logger
from roofdesk.services.claim_folder import ClaimFolder
from roofdesk.services.llm.orchestrator import LLMOrchestrator
from roofdesk.services.llm.types import LLMOrchestrationError, LLMRequest, LLMStage, now_iso

logger = get_logger(__name__)

NARRATIVE_SYSTEM = (
    "You are a senior roofing contractor writing insurance claim documentation. "
    "Write in a professional, factual register. Cite only facts given to you. "
    "Do not invent measurements, dates, or weather data. Plain text, no markdown."
)

NARRATIVE_INSTRUCTIONS = {
    "repair_justification": (
        "Write a repair justification (2-3 paragraphs) explaining why the scope of work "
        "is necessary, referencing the observed damage and applicable building codes."
    ),
    "contractor_summary": (
        "Write a contractor summary (1-2 paragraphs) describing the inspection findings "
        "and the recommended repair approach."
    ),
    "adjuster_cover_letter": (
        "Write a short cover letter addressed to the insurance adjuster introducing the "
        "enclosed claim packet and requesting review."
    ),
    "executive_summary": (
        "Write a 3-5 sentence executive summary of this claim for the first page of the packet."
    ),
}

STAGE_BY_KIND = {
    "repair_justification": LLMStage.claim_narrative,
    "contractor_summary": LLMStage.claim_narrative,
    "adjuster_cover_letter": LLMStage.claim_narrative,
    "executive_summary": LLMStage.executive_summary,
}

NARRATIVE_KINDS = list(NARRATIVE_INSTRUCTIONS)


def _damage_types(folder: ClaimFolder) -> List[str]:
    types: List[str] = []
    for photo in folder.photos:
        for damage in photo.damages:
            damage_type = str(damage.get("damage_type") or "").replace("_", " ")
            if damage_type and damage_type not in types:
                types.append(damage_type)
    return types


def claim_facts(folder: ClaimFolder) -> str:
    """Plain-text fact sheet handed to the model."""
    cover = folder.cover_sheet
    lines = [
        f"Property: {cover.property_address}",
        f"Policyholder: {cover.policyholder_name}",
        f"Claim number: {cover.claim_number}",
    ]
    if cover.carrier:
        lines.append(f"Carrier: {cover.carrier}")
    if cover.date_of_loss:
        lines.append(f"Date of loss: {cover.date_of_loss:%Y-%m-%d}")
    if folder.weather:
        weather = folder.weather
        parts = [p for p in (weather.storm_type, weather.hail_size and f"hail {weather.hail_size}") if p]
        if weather.wind_speed:
            parts.append(f"wind {weather.wind_speed:.0f} mph")
        if parts:
            lines.append("Cause of loss: " + ", ".join(parts))
        if weather.summary:
            lines.append(f"Weather: {weather.summary}")
    lines.append(f"Roof: {folder.inspection.roof_type}, condition {folder.inspection.overall_condition}")
    damage_types = _damage_types(folder)
    if damage_types:
        lines.append("Observed damage: " + ", ".join(damage_types))
    lines.append(f"Photos: {len(folder.photos)}")
    if folder.codes:
        lines.append("Codes: " + ", ".join(code["code"] for code in folder.codes))
    if folder.scope:
        lines.append(f"Scope: {len(folder.scope.line_items)} line items, total ${folder.scope.grand_total:,.2f}")
    return "\n".join(lines)


def fallback_narrative(kind: str, folder: ClaimFolder) -> str:
    cover = folder.cover_sheet
    damage = ", ".join(_damage_types(folder)) or "storm-related damage"
    codes = ", ".join(code["code"] for code in folder.codes) or "applicable local codes"
    loss_date = f"{cover.date_of_loss:%B %d, %Y}" if cover.date_of_loss else "the reported date of loss"

    if kind == "repair_justification":
        return (
            f"Inspection of {cover.property_address} documented {damage} consistent with the "
            f"storm event on {loss_date}. The affected roofing components can no longer perform "
            f"as designed. Repairs must meet {codes}, which require the full scope included in "
            f"this packet rather than isolated patching."
        )
    if kind == "contractor_summary":
        return (
            f"We inspected the {folder.inspection.roof_type.lower()} roof at {cover.property_address} "
            f"and found {damage}. {len(folder.photos)} photos are attached as evidence. We recommend "
            f"the repair scope detailed in this packet."
        )
    if kind == "adjuster_cover_letter":
        adjuster = cover.adjuster_name or "Claims Adjuster"
        return (
            f"Dear {adjuster},\n\nPlease find enclosed the claim packet for claim {cover.claim_number} "
            f"at {cover.property_address}, insured {cover.policyholder_name}. The packet includes "
            f"photo evidence, code citations, and a detailed scope of repairs. We request your review "
            f"at your earliest convenience.\n\nSincerely,\n{cover.contractor_name}"
        )
    if kind == "executive_summary":
        total = f"${folder.scope.grand_total:,.2f}" if folder.scope else "a pending estimate"
        return (
            f"Claim {cover.claim_number} covers {damage} at {cover.property_address} from the loss on "
            f"{loss_date}. The packet documents {len(folder.photos)} photos and {len(folder.codes)} code "
            f"citations, with a repair scope totalling {total}."
        )
    raise ValueError(f"Unknown narrative kind: {kind}")


def generate_narrative(
    kind: str,
    folder: ClaimFolder,
    orchestrator: Optional[LLMOrchestrator] = None,
) -> Dict[str, Any]:
    if kind not in NARRATIVE_INSTRUCTIONS:
        raise ValueError(f"Unknown narrative kind: {kind}")
    orchestrator = orchestrator or LLMOrchestrator()
    request = LLMRequest(
        stage=STAGE_BY_KIND[kind],
        prompt=f"{NARRATIVE_INSTRUCTIONS[kind]}\n\nClaim facts:\n{claim_facts(folder)}",
        system=NARRATIVE_SYSTEM,
        timeout_seconds=get_settings().llm_timeout_seconds,
        max_tokens=1200,
        metadata={"claim_id": folder.claim_id, "kind": kind},
    )
    try:
        response = orchestrator.run_stage(request)
        text = (response.text or "").strip()
        if text:
            return {
                "text": text,
                "provider": response.provider,
                "model": response.model,
                "is_fallback": False,
                "generated_at": now_iso(),
            }
        logger.warning("Empty narrative from %s:%s for claim %s", response.provider, response.model, folder.claim_id)
    except LLMOrchestrationError as exc:
        logger.warning("Narrative %s for claim %s fell back to template: %s", kind, folder.claim_id, exc)

    return {
        "text": fallback_narrative(kind, folder),
        "provider": None,
        "model": None,
        "is_fallback": True,
        "generated_at": now_iso(),
    }


def generate_claim_narratives(
    folder: ClaimFolder,
    kinds: Optional[List[str]] = None,
    orchestrator: Optional[LLMOrchestrator] = None,
) -> Dict[str, Dict[str, Any]]:
    orchestrator = orchestrator or LLMOrchestrator()
    return {kind: generate_narrative(kind, folder, orchestrator) for kind in (kinds or NARRATIVE_KINDS)}
