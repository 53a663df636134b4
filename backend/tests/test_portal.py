from roofdesk.models.claim import Claim
from roofdesk.models.packet import GeneratedPacket
from roofdesk.models.trades import TradesCompany


def _seed_companies(api):
    with api.sessions() as session:
        session.add_all(
            [
                TradesCompany(
                    org_id=1, name="Summit Roofing", slug="summit", trade_types=["roofing", "gutters"],
                    city="Austin", state="TX", service_zips=["78701", "78702"], rating=4.8,
                ),
                TradesCompany(
                    org_id=1, name="Summit Siding", slug="summit-siding", trade_types=["siding"],
                    city="Austin", state="TX", service_zips=["78701"], rating=4.1,
                ),
                TradesCompany(
                    org_id=2, name="Hidden Co", slug="hidden", trade_types=["roofing"],
                    city="Austin", state="TX", is_public=False,
                ),
            ]
        )
        session.commit()


def test_find_a_pro_filters_public_companies(api):
    _seed_companies(api)
    everyone = api.client.get("/portal/find-a-pro", params={"state": "tx"}).json()
    assert [c["name"] for c in everyone] == ["Summit Roofing", "Summit Siding"]

    roofers = api.client.get("/portal/find-a-pro", params={"trade": "Roofing", "zip": "78702"}).json()
    assert [c["slug"] for c in roofers] == ["summit"]

    assert api.client.get("/portal/find-a-pro", params={"city": "Dallas"}).json() == []


def test_public_profile_by_org_slug(api):
    _seed_companies(api)
    profile = api.client.get("/portal/summit-roofing").json()
    assert profile["org_name"] == "Summit Roofing"
    assert len(profile["companies"]) == 2

    missing = api.client.get("/portal/nobody")
    assert missing.status_code == 404


def test_work_request_creates_contact_and_lead(api):
    response = api.client.post(
        "/portal/summit-roofing/work-requests",
        json={
            "first_name": "Dana",
            "last_name": "Reyes",
            "phone": "555-0100",
            "trade_type": "roofing",
            "description": "Leak over the garage",
            "is_insurance_claim": True,
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "new"

    lead = api.client.get(f"/leads/{body['lead_id']}", headers=api.headers("viewer")).json()
    assert lead["title"] == "Roofing request - Dana Reyes"
    assert lead["source"] == "client_portal"
    assert lead["is_insurance_claim"] is True
    assert lead["contact_id"] == body["contact_id"]


def test_shared_packet_link_signs_a_fresh_url(api):
    with api.sessions() as session:
        claim = Claim(org_id=1, claim_number="C000009", title="Hail", narratives={}, damage_summary={})
        session.add(claim)
        session.flush()
        session.add(
            GeneratedPacket(
                org_id=1,
                claim_id=claim.id,
                public_id="abc123",
                sections=["cover-sheet"],
                page_count=1,
                storage_key="packets/1/9/abc123.pdf",
            )
        )
        session.commit()

    packet = api.client.get("/portal/packets/abc123").json()
    assert packet["claim_number"] == "C000009"
    assert packet["url"] == "https://storage.test/packets/1/9/abc123.pdf?ttl=604800"
    assert api.client.get("/portal/packets/nope").status_code == 404
