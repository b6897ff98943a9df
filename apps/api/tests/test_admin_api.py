import pytest

from services.candidates import CandidateProfileInput, create_candidate_profile
from services.session_token import create_session_token


ADMIN_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token('platform-admin', role='admin')['token']}"}


def _company_auth(user_id):
    return {"Authorization": f"Bearer {create_session_token(user_id)['token']}"}


async def _register(client, user_id, name, industry="Technology"):
    response = await client.post(
        "/companies",
        json={"name": name, "industry": industry},
        headers=_company_auth(user_id),
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.mark.asyncio
async def test_admin_routes_reject_non_admin_callers(api_client):
    client, _ = api_client
    company_id = await _register(client, "owner-a", "Acme Search")

    anonymous = await client.get("/admin/companies")
    company_user = await client.get("/admin/companies", headers=_company_auth("owner-a"))
    grant = await client.post(
        f"/admin/companies/{company_id}/credits/grant",
        json={"amount": 5, "reason": "purchase"},
        headers=_company_auth("owner-a"),
    )

    assert anonymous.status_code == 401
    assert company_user.status_code == 403
    assert grant.status_code == 403

    credits = await client.get("/companies/me/credits", headers=_company_auth("owner-a"))
    assert credits.json()["data"]["balance"] == 0


@pytest.mark.asyncio
async def test_admin_grant_deduct_and_history(api_client):
    client, _ = api_client
    company_id = await _register(client, "owner-a", "Acme Search")

    grant = await client.post(
        f"/admin/companies/{company_id}/credits/grant",
        json={"amount": 10, "reason": "purchase", "admin_note": "invoice 42"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert grant.status_code == 200
    assert grant.json()["message"] == "Successfully added 10 credits"
    assert grant.json()["data"]["previous_balance"] == 0
    assert grant.json()["data"]["new_balance"] == 10
    assert grant.json()["data"]["entry"]["actor_id"] == "platform-admin"
    assert grant.json()["data"]["entry"]["admin_note"] == "invoice 42"

    deduct = await client.post(
        f"/admin/companies/{company_id}/credits/deduct",
        json={"amount": 4, "reason": "correction"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert deduct.status_code == 200
    assert deduct.json()["data"]["adjustment"] == -4
    assert deduct.json()["data"]["new_balance"] == 6

    adjust = await client.post(
        f"/admin/companies/{company_id}/credits",
        json={"amount": -1, "reason": "goodwill reversal"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert adjust.status_code == 200
    assert adjust.json()["message"] == "Successfully removed 1 credits"

    history = await client.get(
        f"/admin/companies/{company_id}/credits?limit=2",
        headers=ADMIN_AUTH_HEADER,
    )
    assert history.status_code == 200
    data = history.json()["data"]
    assert data["company_name"] == "Acme Search"
    assert data["current_credits"] == 5
    assert data["total_transactions"] == 3
    assert [entry["sequence"] for entry in data["history"]] == [3, 2]
    assert data["summary"]["total_granted"] == 10
    assert data["summary"]["total_spent"] == 5

    own_history = await client.get("/companies/me/credits/history?offset=2", headers=_company_auth("owner-a"))
    assert [entry["entry_type"] for entry in own_history.json()["data"]["history"]] == ["admin_grant"]


@pytest.mark.asyncio
async def test_admin_adjustment_errors_use_typed_envelopes(api_client):
    client, _ = api_client
    company_id = await _register(client, "owner-a", "Acme Search")

    missing_reason = await client.post(
        f"/admin/companies/{company_id}/credits/grant",
        json={"amount": 5, "reason": "  "},
        headers=ADMIN_AUTH_HEADER,
    )
    zero_amount = await client.post(
        f"/admin/companies/{company_id}/credits",
        json={"amount": 0, "reason": "noop"},
        headers=ADMIN_AUTH_HEADER,
    )
    over_deduct = await client.post(
        f"/admin/companies/{company_id}/credits/deduct",
        json={"amount": 1, "reason": "correction"},
        headers=ADMIN_AUTH_HEADER,
    )
    unknown_company = await client.post(
        "/admin/companies/missing-company/credits/grant",
        json={"amount": 1, "reason": "purchase"},
        headers=ADMIN_AUTH_HEADER,
    )

    assert missing_reason.status_code == 422
    assert missing_reason.json()["error"]["code"] == "MissingReason"
    assert zero_amount.status_code == 422
    assert zero_amount.json()["error"]["code"] == "InvalidAmount"
    assert over_deduct.status_code == 402
    assert over_deduct.json()["error"]["code"] == "InsufficientCredits"
    assert unknown_company.status_code == 404
    assert unknown_company.json()["error"]["code"] == "CompanyNotFound"

    history = await client.get(f"/admin/companies/{company_id}/credits", headers=ADMIN_AUTH_HEADER)
    assert history.json()["data"]["total_transactions"] == 0


@pytest.mark.asyncio
async def test_admin_resets_and_projection_check(api_client):
    client, session_maker = api_client
    company_id = await _register(client, "owner-a", "Acme Search")
    async with session_maker() as db:
        profile = await create_candidate_profile(db, CandidateProfileInput(first_name="Alan", email="alan@example.com"))
        profile_id = profile.id

    await client.post(
        f"/admin/companies/{company_id}/credits/grant",
        json={"amount": 3, "reason": "purchase"},
        headers=ADMIN_AUTH_HEADER,
    )
    await client.post(f"/profiles/{profile_id}/unlock", headers=_company_auth("owner-a"))

    unlock_reset = await client.post(f"/admin/companies/{company_id}/credits/unlocks/reset", headers=ADMIN_AUTH_HEADER)
    assert unlock_reset.status_code == 200
    assert unlock_reset.json()["data"]["balance"] == 2
    assert unlock_reset.json()["data"]["entry"]["reason"] == "admin_unlock_reset"

    credits = await client.get("/companies/me/credits", headers=_company_auth("owner-a"))
    assert credits.json()["data"]["unlocked_profile_ids"] == []

    balance_reset = await client.post(
        f"/admin/companies/{company_id}/credits/reset",
        json={"reason": "contract ended"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert balance_reset.status_code == 200
    assert balance_reset.json()["data"]["previous_balance"] == 2
    assert balance_reset.json()["data"]["new_balance"] == 0
    assert balance_reset.json()["data"]["entry"]["entry_type"] == "admin_reset"

    verify = await client.get(f"/admin/companies/{company_id}/credits/verify", headers=ADMIN_AUTH_HEADER)
    assert verify.status_code == 200
    assert verify.json()["data"]["consistent"] is True
    assert verify.json()["data"]["entries_checked"] == 4
    assert verify.json()["data"]["replayed_balance"] == 0


@pytest.mark.asyncio
async def test_admin_company_listing_filters_and_sorting(api_client):
    client, _ = api_client
    acme = await _register(client, "owner-a", "Acme Search", industry="Technology")
    bolt = await _register(client, "owner-b", "Bolt Partners", industry="Finance")
    await _register(client, "owner-c", "Crest Talent", industry="Technology")

    await client.post(
        f"/admin/companies/{acme}/credits/grant",
        json={"amount": 25, "reason": "purchase"},
        headers=ADMIN_AUTH_HEADER,
    )
    await client.post(
        f"/admin/companies/{bolt}/credits/grant",
        json={"amount": 5, "reason": "purchase"},
        headers=ADMIN_AUTH_HEADER,
    )
    verified = await client.patch(f"/admin/companies/{bolt}", json={"is_verified": True}, headers=ADMIN_AUTH_HEADER)
    assert verified.status_code == 200
    assert verified.json()["data"]["is_verified"] is True

    everything = await client.get("/admin/companies?sort_by=credits&sort_order=desc", headers=ADMIN_AUTH_HEADER)
    data = everything.json()["data"]
    assert [company["name"] for company in data["companies"]] == ["Acme Search", "Bolt Partners", "Crest Talent"]
    assert data["stats"] == {"total_companies": 3, "verified_companies": 1, "total_credits": 30}

    by_range = await client.get("/admin/companies?credit_range=11-50", headers=ADMIN_AUTH_HEADER)
    assert [company["id"] for company in by_range.json()["data"]["companies"]] == [acme]

    empty = await client.get("/admin/companies?credit_range=0", headers=ADMIN_AUTH_HEADER)
    assert [company["name"] for company in empty.json()["data"]["companies"]] == ["Crest Talent"]

    by_industry = await client.get(
        "/admin/companies?industry=Technology&sort_by=name&sort_order=asc",
        headers=ADMIN_AUTH_HEADER,
    )
    assert [company["name"] for company in by_industry.json()["data"]["companies"]] == ["Acme Search", "Crest Talent"]

    search = await client.get("/admin/companies?search=bolt&verification_status=verified", headers=ADMIN_AUTH_HEADER)
    assert search.json()["data"]["total_count"] == 1
    assert search.json()["data"]["companies"][0]["credits"] == 5

    paged = await client.get("/admin/companies?sort_by=name&sort_order=asc&limit=2&page=2", headers=ADMIN_AUTH_HEADER)
    assert [company["name"] for company in paged.json()["data"]["companies"]] == ["Crest Talent"]
    assert paged.json()["data"]["total_count"] == 3

    invalid = await client.get("/admin/companies?credit_range=huge", headers=ADMIN_AUTH_HEADER)
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_admin_company_detail_and_update(api_client):
    client, _ = api_client
    company_id = await _register(client, "owner-a", "Acme Search")

    detail = await client.get(f"/admin/companies/{company_id}", headers=ADMIN_AUTH_HEADER)
    assert detail.status_code == 200
    assert detail.json()["data"]["credits"] == 0
    assert detail.json()["data"]["credit_summary"]["total_transactions"] == 0

    renamed = await client.patch(
        f"/admin/companies/{company_id}",
        json={"name": "Acme Executive Search"},
        headers=ADMIN_AUTH_HEADER,
    )
    blank = await client.patch(f"/admin/companies/{company_id}", json={"name": "   "}, headers=ADMIN_AUTH_HEADER)
    missing = await client.get("/admin/companies/missing-company", headers=ADMIN_AUTH_HEADER)

    assert renamed.json()["data"]["name"] == "Acme Executive Search"
    assert blank.status_code == 422
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "CompanyNotFound"


@pytest.mark.asyncio
async def test_admin_candidate_enrichment(api_client):
    client, _ = api_client

    created = await client.post(
        "/admin/candidates",
        json={
            "first_name": "Katherine",
            "last_name": "Johnson",
            "email": "katherine@example.com",
            "title": "VP Engineering",
        },
        headers=ADMIN_AUTH_HEADER,
    )
    assert created.status_code == 201
    profile_id = created.json()["data"]["id"]
    assert created.json()["data"]["admin_enrichment"]["verification_status"] == "pending"

    updated = await client.put(
        f"/admin/candidates/{profile_id}/enrichment",
        json={
            "verification_status": "verified",
            "admin_notes": "Reference checks complete.",
            "quality_score": 87,
            "tags": ["fintech", "fintech", "board-ready"],
        },
        headers=ADMIN_AUTH_HEADER,
    )
    assert updated.status_code == 200
    enrichment = updated.json()["data"]["admin_enrichment"]
    assert enrichment["verification_status"] == "verified"
    assert enrichment["quality_score"] == 87
    assert enrichment["tags"] == ["fintech", "board-ready"]

    fetched = await client.get(f"/admin/candidates/{profile_id}", headers=ADMIN_AUTH_HEADER)
    assert fetched.json()["data"]["admin_enrichment"]["admin_notes"] == "Reference checks complete."

    out_of_range = await client.put(
        f"/admin/candidates/{profile_id}/enrichment",
        json={"quality_score": 101},
        headers=ADMIN_AUTH_HEADER,
    )
    unknown_status = await client.put(
        f"/admin/candidates/{profile_id}/enrichment",
        json={"verification_status": "maybe"},
        headers=ADMIN_AUTH_HEADER,
    )
    missing = await client.put(
        "/admin/candidates/missing-profile/enrichment",
        json={"verification_status": "verified"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert out_of_range.status_code == 422
    assert unknown_status.status_code == 422
    assert missing.status_code == 404

    # Company viewers never see admin enrichment.
    await _register(client, "owner-a", "Acme Search")
    company_view = await client.get(f"/profiles/{profile_id}", headers=_company_auth("owner-a"))
    assert "admin_enrichment" not in company_view.json()["data"]


async def _admin_create_candidate(client, **fields):
    payload = {"first_name": "Dorothy", "last_name": "Vaughan", "email": "dorothy@example.com"}
    payload.update(fields)
    response = await client.post("/admin/candidates", json=payload, headers=ADMIN_AUTH_HEADER)
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.mark.asyncio
async def test_admin_candidate_listing_update_and_deactivate(api_client):
    client, _ = api_client
    cfo_id = await _admin_create_candidate(client, title="Chief Financial Officer", location="Boston")
    cto_id = await _admin_create_candidate(
        client,
        first_name="Katherine",
        last_name="Johnson",
        email="katherine@example.com",
        title="Chief Technology Officer",
        location="Hampton",
    )
    board_id = await _admin_create_candidate(client, title="Board Member", location="Boston")

    await client.put(
        f"/admin/candidates/{cto_id}/enrichment",
        json={"verification_status": "verified"},
        headers=ADMIN_AUTH_HEADER,
    )

    patched = await client.patch(
        f"/admin/candidates/{board_id}",
        json={"title": "Independent Director", "profile_completed": True},
        headers=ADMIN_AUTH_HEADER,
    )
    assert patched.status_code == 200
    assert patched.json()["message"] == "Candidate profile updated"
    assert patched.json()["data"]["title"] == "Independent Director"
    assert patched.json()["data"]["profile_completed"] is True
    assert patched.json()["data"]["location"] == "Boston"
    assert patched.json()["data"]["updated_at"] is not None

    null_flag = await client.patch(
        f"/admin/candidates/{board_id}",
        json={"is_active": None},
        headers=ADMIN_AUTH_HEADER,
    )
    assert null_flag.status_code == 422

    deactivated = await client.delete(f"/admin/candidates/{cfo_id}", headers=ADMIN_AUTH_HEADER)
    assert deactivated.status_code == 200
    assert deactivated.json()["data"]["is_active"] is False

    default_listing = await client.get("/admin/candidates?sort_by=title&sort_order=asc", headers=ADMIN_AUTH_HEADER)
    assert default_listing.status_code == 200
    data = default_listing.json()["data"]
    assert data["total_count"] == 2
    assert [candidate["title"] for candidate in data["candidates"]] == [
        "Chief Technology Officer",
        "Independent Director",
    ]
    assert data["candidates"][0]["contact"]["email"] == "katherine@example.com"

    with_inactive = await client.get("/admin/candidates?include_inactive=true", headers=ADMIN_AUTH_HEADER)
    inactive_only = await client.get("/admin/candidates?status=inactive", headers=ADMIN_AUTH_HEADER)
    verified = await client.get("/admin/candidates?verification=verified", headers=ADMIN_AUTH_HEADER)
    pending = await client.get("/admin/candidates?verification=pending", headers=ADMIN_AUTH_HEADER)
    searched = await client.get("/admin/candidates?search=KATHERINE", headers=ADMIN_AUTH_HEADER)
    located = await client.get("/admin/candidates?location=boston&status=all", headers=ADMIN_AUTH_HEADER)
    paged = await client.get("/admin/candidates?include_inactive=true&limit=2&page=2", headers=ADMIN_AUTH_HEADER)
    bad_sort = await client.get("/admin/candidates?sort_by=salary", headers=ADMIN_AUTH_HEADER)

    assert with_inactive.json()["data"]["total_count"] == 3
    assert [c["id"] for c in inactive_only.json()["data"]["candidates"]] == [cfo_id]
    assert [c["id"] for c in verified.json()["data"]["candidates"]] == [cto_id]
    assert [c["id"] for c in pending.json()["data"]["candidates"]] == [board_id]
    assert [c["id"] for c in searched.json()["data"]["candidates"]] == [cto_id]
    assert [c["id"] for c in located.json()["data"]["candidates"]] == [board_id]
    assert paged.json()["data"]["total_pages"] == 2
    assert len(paged.json()["data"]["candidates"]) == 1
    assert bad_sort.status_code == 422

    # A deactivated profile disappears for companies.
    await _register(client, "owner-a", "Acme Search")
    company_view = await client.get(f"/profiles/{cfo_id}", headers=_company_auth("owner-a"))
    assert company_view.status_code == 404

    missing = await client.delete("/admin/candidates/missing-profile", headers=ADMIN_AUTH_HEADER)
    forbidden = await client.get("/admin/candidates", headers=_company_auth("owner-a"))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "ProfileNotFound"
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_admin_candidate_approval_workflow(api_client):
    client, _ = api_client
    profile_id = await _admin_create_candidate(client, title="Chief Marketing Officer")

    initial = await client.get(f"/admin/candidates/{profile_id}/approval", headers=ADMIN_AUTH_HEADER)
    assert initial.status_code == 200
    assert initial.json()["data"]["status"] == "pending"
    assert initial.json()["data"]["history"] == []
    assert initial.json()["data"]["last_action"] is None

    changes = await client.post(
        f"/admin/candidates/{profile_id}/approval",
        json={
            "action": "request_changes",
            "reason": "Summary is missing.",
            "required_changes": ["Add a summary", "  "],
        },
        headers=ADMIN_AUTH_HEADER,
    )
    assert changes.status_code == 200
    assert changes.json()["message"] == "Changes requested"
    assert changes.json()["data"]["status"] == "changes_requested"
    assert changes.json()["data"]["last_action"]["required_changes"] == ["Add a summary"]
    assert changes.json()["data"]["last_action"]["actor_id"] == "platform-admin"

    approved = await client.post(
        f"/admin/candidates/{profile_id}/approval",
        json={"action": "approve"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert approved.json()["message"] == "Candidate approved"
    assert approved.json()["data"]["status"] == "approved"
    assert approved.json()["data"]["is_active"] is True
    assert [record["action"] for record in approved.json()["data"]["history"]] == ["approve", "request_changes"]

    detail = await client.get(f"/admin/candidates/{profile_id}", headers=ADMIN_AUTH_HEADER)
    assert detail.json()["data"]["profile_completed"] is True

    # Editing enrichment keeps the approval trail.
    await client.put(
        f"/admin/candidates/{profile_id}/enrichment",
        json={"verification_status": "verified", "tags": ["cmo"]},
        headers=ADMIN_AUTH_HEADER,
    )
    after_edit = await client.get(f"/admin/candidates/{profile_id}/approval", headers=ADMIN_AUTH_HEADER)
    assert after_edit.json()["data"]["status"] == "approved"
    assert len(after_edit.json()["data"]["history"]) == 2

    rejected = await client.post(
        f"/admin/candidates/{profile_id}/approval",
        json={"action": "reject", "reason": "Duplicate profile."},
        headers=ADMIN_AUTH_HEADER,
    )
    assert rejected.json()["data"]["status"] == "rejected"
    assert rejected.json()["data"]["is_active"] is False
    assert rejected.json()["data"]["last_action"]["reason"] == "Duplicate profile."

    rejected_listing = await client.get(
        "/admin/candidates?approval_status=rejected&include_inactive=true",
        headers=ADMIN_AUTH_HEADER,
    )
    assert [c["id"] for c in rejected_listing.json()["data"]["candidates"]] == [profile_id]
    assert rejected_listing.json()["data"]["candidates"][0]["admin_enrichment"]["tags"] == ["cmo"]

    unknown_action = await client.post(
        f"/admin/candidates/{profile_id}/approval",
        json={"action": "archive"},
        headers=ADMIN_AUTH_HEADER,
    )
    missing = await client.post(
        "/admin/candidates/missing-profile/approval",
        json={"action": "approve"},
        headers=ADMIN_AUTH_HEADER,
    )
    assert unknown_action.status_code == 422
    assert missing.status_code == 404
