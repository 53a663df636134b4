import json
from types import SimpleNamespace

from roofdesk.services.analysis_cache import AnalysisCache
from roofdesk.services.damage_detection import (
    DamageDetector,
    DamageFinding,
    build_damage_fields,
    generate_annotations,
    generate_scope_bullets,
    highest_severity,
    mock_photo_analysis,
    parse_findings,
)


class _FakeCompletions:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = 0

    def create(self, **kwargs):
        self.calls += 1
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        message = SimpleNamespace(content=nxt)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _fake_client(responses):
    completions = _FakeCompletions(responses)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class _DictRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value


VISION_PAYLOAD = {
    "caption": "Wind-lifted tabs along the ridge.",
    "damages": [
        {
            "damageType": "lifted_shingle",
            "severity": "HIGH",
            "description": "Tabs lifted",
            "confidence": 1.7,
            "location": {"x": 20, "y": 10, "width": 12, "height": 6},
        },
        {"damageType": "hail_impact", "severity": "bogus", "confidence": 0.6},
        {"severity": "low"},
    ],
    "materials": ["architectural shingle", ""],
    "overallCondition": "Poor",
}


def test_parse_findings_normalizes_severity_and_confidence():
    findings = parse_findings(VISION_PAYLOAD["damages"])
    assert [f.damage_type for f in findings] == ["lifted_shingle", "hail_impact"]
    assert findings[0].severity == "high"
    assert findings[0].confidence == 1.0
    assert findings[1].severity == "medium"
    assert findings[1].location is None


def test_annotations_use_circles_for_hail_and_skip_unlocated_findings():
    damages = [
        DamageFinding("hail_impact", "critical", "", 0.9, {"x": 10, "y": 10, "width": 8, "height": 8}),
        DamageFinding("flashing_damage", "low", "", 0.7, {"x": 60, "y": 40, "width": 20, "height": 10}),
        DamageFinding("granule_loss", "low", "", 0.7, None),
    ]
    boxes = generate_annotations(damages)
    assert len(boxes) == 2
    assert boxes[0].type == "circle" and boxes[0].radius == 4
    assert boxes[0].color == "#7C3AED"
    assert boxes[1].type == "box" and boxes[1].radius is None
    assert boxes[1].label == "flashing damage"
    assert [b.id for b in boxes] == ["annotation_1", "annotation_2"]


def test_scope_bullets_scale_with_severity():
    spot = generate_scope_bullets([DamageFinding("granule_loss", "low", "", 0.5)])
    assert spot[0].startswith("Spot repairs")
    assert not any("R905.2.7" in b for b in spot)

    severe = [DamageFinding("soft_metal_damage", "high", "", 0.5) for _ in range(3)]
    bullets = generate_scope_bullets(severe)
    assert bullets[0].startswith("Full roof replacement")
    assert any("soft metals" in b for b in bullets)
    assert any("R905.2.7" in b for b in bullets)
    assert bullets[-1].startswith("Document all findings")


def test_highest_severity_defaults_to_low():
    assert highest_severity([]) == "low"
    assert highest_severity(mock_photo_analysis().damages) == "medium"


def test_detector_without_client_returns_flagged_mock(monkeypatch):
    detector = DamageDetector()
    detector._client = None
    analysis = detector.analyze_photo("https://cdn.test/roof-1.jpg")
    assert analysis.is_fallback
    assert analysis.photo_url == "https://cdn.test/roof-1.jpg"
    assert {d.damage_type for d in analysis.damages} == {"hail_impact", "granule_loss"}


def test_detector_parses_vision_json_and_caches_it():
    client, completions = _fake_client([json.dumps(VISION_PAYLOAD)])
    cache = AnalysisCache(client=_DictRedis())
    detector = DamageDetector(client=client, cache=cache)

    first = detector.analyze_photo("https://cdn.test/roof-2.jpg")
    assert not first.is_fallback
    assert first.caption == "Wind-lifted tabs along the ridge."
    assert first.materials == ["architectural shingle"]
    assert first.overall_condition == "Poor"
    assert len(first.annotations) == 1

    second = detector.analyze_photo("https://cdn.test/roof-2.jpg")
    assert completions.calls == 1
    assert second.caption == first.caption
    assert second.damages[0].damage_type == "lifted_shingle"


def test_detector_falls_back_on_api_errors_and_bad_json():
    client, _ = _fake_client([RuntimeError("503 upstream"), "not json"])
    detector = DamageDetector(client=client)
    assert detector.analyze_photo("https://cdn.test/a.jpg").is_fallback
    assert detector.analyze_photo("https://cdn.test/b.jpg").is_fallback


def test_analyze_batch_caps_photos_and_summarizes():
    detector = DamageDetector()
    detector._client = None
    urls = [f"https://cdn.test/{i}.jpg" for i in range(5)]
    batch = detector.analyze_batch(urls, max_concurrent=2, max_photos=3)
    assert batch.summary.total_photos == 3
    assert batch.summary.analyzed_photos == 3
    assert batch.summary.failed_photos == 0
    assert batch.summary.fallback_photos == 3
    assert batch.summary.aggregated_damage_types == ["hail_impact", "granule_loss"]
    assert batch.summary.highest_severity == "medium"
    assert batch.summary.overall_confidence == 0.87
    assert [r.photo_url for r in batch.results] == urls[:3]


def test_build_damage_fields_marks_fields_for_review():
    analyses = [mock_photo_analysis("a"), mock_photo_analysis("b")]
    fields = build_damage_fields(analyses)
    assert {"caption_1", "caption_2", "damage_types", "scope_bullets", "materials",
            "annotations", "severity_distribution"} <= set(fields)
    for value in fields.values():
        assert value["ai_generated"] is True
        assert value["approved"] is False
        assert value["source"] == "fallback"
    assert fields["severity_distribution"]["value"]["medium"] == 4
    assert len(fields["annotations"]["value"]) == 4
