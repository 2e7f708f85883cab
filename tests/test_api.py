import pytest
from fastapi.testclient import TestClient

import main as main_module
from listing_optimizer.constants import MSG_DIAGNOSIS_FAILED, MSG_NO_VALID_PLAN
from listing_optimizer.models import OptimizationResult


@pytest.fixture()
def api_client(monkeypatch, fake_gateway):
    monkeypatch.setattr(main_module.sessions, "gateway", fake_gateway)
    with TestClient(main_module.app) as client:
        yield client


def _new_session(api_client) -> str:
    resp = api_client.post("/api/v1/sessions")
    assert resp.status_code == 201
    return resp.json()["session_id"]


def _to_optimization(api_client, session_id: str) -> dict:
    api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "Amazon Japan"})
    api_client.patch(f"/api/v1/sessions/{session_id}/input", json={"title": "Wireless Earbuds X1"})
    api_client.post(f"/api/v1/sessions/{session_id}/diagnosis")
    return api_client.post(f"/api/v1/sessions/{session_id}/optimization").json()


def test_health(api_client):
    body = api_client.get("/health").json()
    assert body["status"] == "ok"
    assert body["models"]["image_model"]


def test_platforms_lists_three_marketplaces(api_client):
    platforms = api_client.get("/api/v1/platforms").json()["platforms"]
    assert [item["name"] for item in platforms] == ["Yahoo!ショッピング", "楽天市場", "Amazon Japan"]
    assert all(len(item["rules"]) == 5 for item in platforms)


def test_new_session_starts_on_platform_step(api_client):
    body = api_client.post("/api/v1/sessions").json()
    assert body["step"] == "PLATFORM"
    assert body["step_index"] == 0
    assert body["input"]["competitor_urls"] == [""]
    assert body["steps"][0]["current"] is True


def test_unknown_session_is_404(api_client):
    assert api_client.get("/api/v1/sessions/missing").status_code == 404
    assert api_client.post("/api/v1/sessions/missing/reset").status_code == 404


def test_unknown_platform_is_400(api_client):
    session_id = _new_session(api_client)
    resp = api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "ebay"})
    assert resp.status_code == 400


def test_platform_accepts_member_name(api_client):
    session_id = _new_session(api_client)
    body = api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "rakuten"}).json()
    assert body["platform"] == "楽天市場"
    assert body["step"] == "INPUT"


def test_diagnosis_with_empty_title_is_rejected(api_client, fake_gateway):
    session_id = _new_session(api_client)
    api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "AMAZON"})
    before = api_client.get(f"/api/v1/sessions/{session_id}").json()
    assert before["controls"]["can_start_diagnosis"] is False
    resp = api_client.post(f"/api/v1/sessions/{session_id}/diagnosis")
    assert resp.status_code == 400
    assert fake_gateway.calls == []
    assert api_client.get(f"/api/v1/sessions/{session_id}").json() == before


def test_diagnosis_failure_is_reported_in_view(api_client, fake_gateway):
    session_id = _new_session(api_client)
    api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "AMAZON"})
    api_client.patch(f"/api/v1/sessions/{session_id}/input", json={"title": "Wireless Earbuds X1"})
    fake_gateway.fail["diagnosis"] = True
    resp = api_client.post(f"/api/v1/sessions/{session_id}/diagnosis")
    assert resp.status_code == 200
    body = resp.json()
    assert body["step"] == "INPUT"
    assert body["error"] == MSG_DIAGNOSIS_FAILED
    assert body["busy"] is False
    assert body["controls"]["can_start_diagnosis"] is True


def test_competitor_slots_capped_at_three(api_client):
    session_id = _new_session(api_client)
    api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "YAHOO"})
    api_client.post(f"/api/v1/sessions/{session_id}/competitors")
    body = api_client.post(f"/api/v1/sessions/{session_id}/competitors").json()
    assert body["input"]["competitor_urls"] == ["", "", ""]
    assert body["controls"]["can_add_competitor_url"] is False
    assert api_client.post(f"/api/v1/sessions/{session_id}/competitors").status_code == 400
    too_many = {"competitor_urls": ["a", "b", "c", "d"]}
    assert api_client.patch(f"/api/v1/sessions/{session_id}/input", json=too_many).status_code == 422


def test_extract_fills_title(api_client):
    session_id = _new_session(api_client)
    api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "YAHOO"})
    api_client.patch(f"/api/v1/sessions/{session_id}/input", json={"product_url": "https://shopping.yahoo.co.jp/x"})
    body = api_client.post(f"/api/v1/sessions/{session_id}/extract").json()
    assert body["input"]["title"] == "抽出タイトル"
    assert body["controls"]["can_start_diagnosis"] is True


def test_end_to_end_amazon_flow(api_client, fake_gateway):
    session_id = _new_session(api_client)
    body = api_client.post(f"/api/v1/sessions/{session_id}/platform", json={"platform": "Amazon Japan"}).json()
    assert body["step"] == "INPUT"

    body = api_client.patch(
        f"/api/v1/sessions/{session_id}/input",
        json={"title": "Wireless Earbuds X1", "competitor_urls": ["https://www.amazon.co.jp/dp/B0COMP1"]},
    ).json()
    assert body["input"]["title"] == "Wireless Earbuds X1"

    body = api_client.post(f"/api/v1/sessions/{session_id}/diagnosis").json()
    assert body["step"] == "DIAGNOSIS"
    assert len(body["diagnosis"]["competitor_analysis"]) == 2
    assert body["controls"]["can_generate_plans"] is True

    body = api_client.post(f"/api/v1/sessions/{session_id}/optimization").json()
    assert body["step"] == "OPTIMIZATION"
    assert body["optimization"]["can_select"] is True
    assert len(body["optimization"]["plans"]) == 3
    chart = body["optimization"]["plans"][0]["score_chart"]
    assert [item["value"] for item in chart] == [90, 80, 70, 85, 75]

    body = api_client.post(f"/api/v1/sessions/{session_id}/plans/1/select").json()
    assert body["step"] == "IMAGE_GENERATION"
    assert body["selected_plan"]["name"] == "方案B"
    slots = body["image_generation"]["slots"]
    assert [slot["id"] for slot in slots] == [1, 2]
    assert all(slot["can_generate"] is False for slot in slots)
    assert api_client.post(f"/api/v1/sessions/{session_id}/images/1").status_code == 400

    files = {"image": ("earbuds.jpg", b"\xff\xd8\xff\xe0fake-jpeg", "image/jpeg")}
    body = api_client.post(f"/api/v1/sessions/{session_id}/reference-image", files=files).json()
    assert body["image_generation"]["has_reference_image"] is True
    assert [slot["can_generate"] for slot in body["image_generation"]["slots"]] == [True, True]

    fake_gateway.failing_images.add(1)
    body = api_client.post(f"/api/v1/sessions/{session_id}/images/1").json()
    body = api_client.post(f"/api/v1/sessions/{session_id}/images/2").json()
    slot_1, slot_2 = body["image_generation"]["slots"]
    assert slot_1["status"] == "failed"
    assert slot_1["image"] is None
    assert slot_2["status"] == "done"
    assert slot_2["image"].startswith("data:image/png;base64,")
    assert api_client.post(f"/api/v1/sessions/{session_id}/images/3").status_code == 400

    body = api_client.post(f"/api/v1/sessions/{session_id}/reset").json()
    assert body["step"] == "PLATFORM"
    assert body["platform"] is None
    assert body["input"]["competitor_urls"] == [""]
    assert body["diagnosis"] is None
    assert body["optimization"] is None
    assert body["selected_plan"] is None
    assert body["image_generation"] is None


def test_empty_plan_list_renders_no_valid_plan_state(api_client, fake_gateway):
    fake_gateway.optimization = OptimizationResult(plans=[])
    session_id = _new_session(api_client)
    body = _to_optimization(api_client, session_id)
    assert body["step"] == "OPTIMIZATION"
    assert body["optimization"] == {"empty": True, "message": MSG_NO_VALID_PLAN, "can_select": False, "plans": []}
    assert api_client.post(f"/api/v1/sessions/{session_id}/plans/0/select").status_code == 400


def test_reference_image_validation(api_client):
    session_id = _new_session(api_client)
    _to_optimization(api_client, session_id)
    api_client.post(f"/api/v1/sessions/{session_id}/plans/0/select")
    url = f"/api/v1/sessions/{session_id}/reference-image"
    assert api_client.post(url, files={"image": ("a.gif", b"GIF89a", "image/gif")}).status_code == 400
    assert api_client.post(url, files={"image": ("a.png", b"", "image/png")}).status_code == 400


def test_reference_image_before_plan_selection_is_rejected(api_client):
    session_id = _new_session(api_client)
    resp = api_client.post(
        f"/api/v1/sessions/{session_id}/reference-image",
        files={"image": ("a.png", b"\x89PNG", "image/png")},
    )
    assert resp.status_code == 400


def test_delete_session(api_client):
    session_id = _new_session(api_client)
    assert api_client.delete(f"/api/v1/sessions/{session_id}").status_code == 204
    assert api_client.get(f"/api/v1/sessions/{session_id}").status_code == 404
