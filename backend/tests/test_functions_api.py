from roofdesk.models.vendor import Vendor


def _claim_id(api):
    response = api.client.post("/claims", json={"title": "Wind claim"}, headers=api.headers("member"))
    return response.json()["id"]


def _call(api, name, data=None, role="member"):
    return api.client.post(f"/functions/{name}", json={"data": data or {}}, headers=api.headers(role))


def test_unknown_function_is_not_found(api):
    response = _call(api, "launchRockets")
    assert response.status_code == 404
    assert "getClaimReadiness" in response.json()["error"]["details"]["available"]


def test_functions_require_tenant_headers(api):
    response = api.client.post("/functions/getClaimReadiness", json={"data": {"claimId": 1}})
    assert response.status_code == 401


def test_generate_claim_packet_queues_job(api):
    claim_id = _claim_id(api)
    response = _call(api, "generateClaimPacket", {"claimId": claim_id, "mode": "full"})
    assert response.status_code == 200
    job = response.json()["result"]
    assert job["job_type"] == "build_packet"
    assert job["claim_id"] == claim_id
    assert job["params_json"] == {"mode": "full"}
    assert api.dispatched == [(job["id"], "build_packet")]


def test_generate_claim_packet_validates_arguments(api):
    assert _call(api, "generateClaimPacket", {}).status_code == 400
    assert _call(api, "generateClaimPacket", {"claim_id": "abc"}).status_code == 400
    claim_id = _claim_id(api)
    assert _call(api, "generateClaimPacket", {"claim_id": claim_id, "mode": "deluxe"}).status_code == 400
    assert _call(api, "generateClaimPacket", {"claim_id": 999}).status_code == 404
    assert api.dispatched == []


def test_viewer_cannot_trigger_jobs(api):
    claim_id = _claim_id(api)
    response = _call(api, "generateClaimNarratives", {"claimId": claim_id}, role="viewer")
    assert response.status_code == 403
    assert response.json()["error"]["status"] == "permission-denied"


def test_analyze_and_narrative_callables(api):
    claim_id = _claim_id(api)
    assert _call(api, "analyzeClaimPhotos", {"claimId": claim_id}).status_code == 412

    api.client.post(
        f"/claims/{claim_id}/photos", json={"url": "https://cdn.test/roof.jpg"}, headers=api.headers("member")
    )
    analyzed = _call(api, "analyzeClaimPhotos", {"claimId": claim_id}).json()["result"]
    assert analyzed["job_type"] == "analyze_damage"

    narratives = _call(
        api, "generateClaimNarratives", {"claimId": claim_id, "kinds": ["contractor_summary"]}
    ).json()["result"]
    assert narratives["params_json"] == {"kinds": ["contractor_summary"]}


def test_get_claim_readiness_returns_breakdown(api):
    claim_id = _claim_id(api)
    result = _call(api, "getClaimReadiness", {"claimId": claim_id}, role="viewer").json()["result"]
    assert result["claim_id"] == claim_id
    assert set(result["categories"]) == {
        "weather", "photos", "codes", "scope", "narratives", "signatures", "timeline",
    }
    assert result["recommendation"] == "Add weather verification to improve claim strength."


def test_sync_vendor_catalog_callable(api):
    with api.sessions() as session:
        vendor = Vendor(org_id=1, slug="abc", name="ABC", feed_url="https://abc.test/feed")
        session.add(vendor)
        session.commit()
        vendor_id = vendor.id

    assert _call(api, "syncVendorCatalog", {"vendorId": vendor_id}).status_code == 403
    job = _call(api, "syncVendorCatalog", {"vendorId": vendor_id}, role="manager").json()["result"]
    assert job["job_type"] == "vendor_sync"
    assert job["vendor_id"] == vendor_id
