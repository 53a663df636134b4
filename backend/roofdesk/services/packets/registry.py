"""Section registry: packet section name -> render function, loaded on demand."""
from __future__ import annotations

import importlib
from typing import Callable, Dict, Iterable, List, Optional

from roofdesk.errors import InvalidArgumentError

_SECTIONS = "roofdesk.services.packets.sections"

SECTION_REGISTRY: Dict[str, str] = {
    "cover-sheet": f"{_SECTIONS}.cover:render_cover_sheet",
    "table-of-contents": f"{_SECTIONS}.cover:render_table_of_contents",
    "executive-summary": f"{_SECTIONS}.cover:render_executive_summary",
    "weather-cause-of-loss": f"{_SECTIONS}.evidence:render_weather",
    "inspection-overview": f"{_SECTIONS}.evidence:render_inspection_overview",
    "damage-assessment": f"{_SECTIONS}.evidence:render_damage_assessment",
    "photo-evidence": f"{_SECTIONS}.evidence:render_photo_evidence",
    "code-compliance": f"{_SECTIONS}.compliance:render_code_compliance",
    "scope-pricing": f"{_SECTIONS}.compliance:render_scope_pricing",
    "repair-justification": f"{_SECTIONS}.narratives:render_repair_justification",
    "contractor-summary": f"{_SECTIONS}.narratives:render_contractor_summary",
    "adjuster-cover-letter": f"{_SECTIONS}.narratives:render_adjuster_cover_letter",
    "timeline": f"{_SECTIONS}.records:render_timeline",
    "digital-signatures": f"{_SECTIONS}.records:render_signatures",
    "claim-checklist": f"{_SECTIONS}.records:render_checklist",
}

SECTION_TITLES: Dict[str, str] = {
    "cover-sheet": "Cover Sheet",
    "table-of-contents": "Table of Contents",
    "executive-summary": "Executive Summary",
    "weather-cause-of-loss": "Weather & Cause of Loss",
    "inspection-overview": "Inspection Overview",
    "damage-assessment": "Damage Assessment",
    "photo-evidence": "Photo Evidence",
    "code-compliance": "Code Compliance",
    "scope-pricing": "Scope & Pricing",
    "repair-justification": "Repair Justification",
    "contractor-summary": "Contractor Summary",
    "adjuster-cover-letter": "Adjuster Cover Letter",
    "timeline": "Claim Timeline",
    "digital-signatures": "Signatures",
    "claim-checklist": "Claim Checklist",
}

MODE_PRESETS: Dict[str, List[str]] = {
    "quick": [
        "cover-sheet",
        "executive-summary",
        "photo-evidence",
        "scope-pricing",
    ],
    "standard": [
        "cover-sheet",
        "table-of-contents",
        "executive-summary",
        "weather-cause-of-loss",
        "inspection-overview",
        "damage-assessment",
        "photo-evidence",
        "code-compliance",
        "scope-pricing",
        "repair-justification",
        "claim-checklist",
    ],
    "full": list(SECTION_REGISTRY),
}

DEFAULT_MODE = "standard"

_renderer_cache: Dict[str, Callable] = {}


def load_section_renderer(name: str) -> Callable:
    """Import the render function registered for ``name``."""
    if name in _renderer_cache:
        return _renderer_cache[name]
    target = SECTION_REGISTRY.get(name)
    if target is None:
        raise InvalidArgumentError(f"Unknown packet section: {name}", details={"section": name})
    module_path, func_name = target.split(":", 1)
    module = importlib.import_module(module_path)
    renderer = getattr(module, func_name)
    _renderer_cache[name] = renderer
    return renderer


def _dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for name in names:
        key = str(name or "").strip()
        if key and key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


def resolve_sections(
    requested: Optional[List[str]] = None,
    template_sections: Optional[List[str]] = None,
    mode: Optional[str] = None,
) -> List[str]:
    """Pick the packet's section order.

    An explicit request wins, then the org template's sections, then the mode
    preset. Duplicates keep their first position. Unknown names are rejected
    here so nothing is drawn for a bad request.
    """
    if requested:
        sections = _dedupe(requested)
    elif template_sections:
        sections = _dedupe(template_sections)
    else:
        preset = MODE_PRESETS.get(mode or DEFAULT_MODE)
        if preset is None:
            raise InvalidArgumentError(
                f"Unknown packet mode: {mode}", details={"modes": sorted(MODE_PRESETS)}
            )
        sections = list(preset)

    unknown = [name for name in sections if name not in SECTION_REGISTRY]
    if unknown:
        raise InvalidArgumentError(
            f"Unknown packet section(s): {', '.join(unknown)}", details={"unknown": unknown}
        )
    if not sections:
        raise InvalidArgumentError("Packet must contain at least one section")
    return sections
