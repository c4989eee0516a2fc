import base64
import io

from bson import ObjectId
from PIL import Image

from conftest import API_KEY, DESCRIPTION, OTHER_OWNER


def _png(width: int, height: int, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _create(api_client, **body):
    response = api_client.post("/api/products", json=body)
    assert response.status_code == 201, response.text
    return response.json()


##########################################
################ AUTH ####################
##########################################

def test_wrong_api_key_is_rejected(api_client):
    response = api_client.get("/api/products", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401


def test_missing_user_header_is_rejected(api_client):
    response = api_client.get("/api/products", headers={"X-User-Id": "   "})
    assert response.status_code == 401


def test_health_reports_dependencies(api_client):
    response = api_client.get("/health", headers={"X-API-Key": ""})
    assert response.status_code == 200
    assert response.json()["database"] is True
    assert response.json()["storage"] is True


##########################################
############### PRODUCTS #################
##########################################

def test_create_product_generates_description(api_client, llm_backend):
    product = _create(api_client, stage="prompts", image_config={"base64_image": "QUJD"})
    assert product["description"] == DESCRIPTION
    assert product["status"] == "draft"
    assert (product["human_id"], product["batch_id"]) == ("p-1", "b-1")
    sent = llm_backend["requests"][0]["messages"][1]["content"][1]["image_url"]["url"]
    assert sent == "data:image/jpeg;base64,QUJD"


def test_create_product_synthesises_original_asset(api_client, llm_backend):
    product = _create(api_client, image_config={"original_image_url": "https://cdn.example/o.jpg"})
    assert [asset["url"] for asset in product["original_images"]] == ["https://cdn.example/o.jpg"]
    assert product["original_images"][0]["type"] == "original"
    assert product.get("description") is None
    assert llm_backend["requests"] == []


def test_create_product_rejects_identifier_fields(api_client):
    response = api_client.post("/api/products", json={"human_id": "p-9"})
    assert response.status_code == 422
    assert response.json()["error"] == "Validation error"


def test_description_backend_failure_maps_to_502(api_client, llm_backend):
    llm_backend["status"] = 429
    response = api_client.post("/api/products", json={"image_config": {"base64_image": "QUJD"}})
    assert response.status_code == 502
    assert "rate limit" in response.json()["error"]
    assert api_client.get("/api/products").json()["total"] == 0


def test_list_products_is_owner_scoped_and_paginated(api_client):
    for _ in range(3):
        _create(api_client, stage="prompts")
    _create(api_client, stage="enhance")
    api_client.post("/api/products", json={}, headers={"X-User-Id": OTHER_OWNER})

    page = api_client.get("/api/products", params={"stage": "prompts", "limit": 2}).json()
    assert (page["total"], page["total_pages"], page["page"]) == (3, 2, 1)
    assert [p["human_id"] for p in page["items"]] == ["p-3", "p-2"]

    assert api_client.get("/api/products", params={"limit": 0}).status_code == 422


def test_get_product_checks_ownership(api_client):
    product = _create(api_client)
    assert api_client.get(f"/api/products/{product['id']}").json()["id"] == product["id"]

    foreign = api_client.get(f"/api/products/{product['id']}", headers={"X-User-Id": OTHER_OWNER})
    assert foreign.status_code == 403
    assert api_client.get(f"/api/products/{ObjectId()}").status_code == 404
    assert api_client.get("/api/products/not-an-id").status_code == 404


def test_patch_product(api_client):
    product = _create(api_client, description="old", stage="prompts")
    response = api_client.patch(
        f"/api/products/{product['id']}",
        json={"description": "new", "metadata": {"title": "Apple", "tags": ["fruit"]}},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["description"] == "new"
    assert body["metadata"]["tags"] == ["fruit"]
    assert body["stage"] == "prompts"
    assert body["created_at"] == product["created_at"]

    assert api_client.patch(f"/api/products/{product['id']}", json={"owner_id": "x"}).status_code == 422
    foreign = api_client.patch(f"/api/products/{product['id']}", json={"description": "mine"}, headers={"X-User-Id": OTHER_OWNER})
    assert foreign.status_code == 403


def test_delete_product(api_client):
    product = _create(api_client)
    assert api_client.delete(f"/api/products/{product['id']}", headers={"X-User-Id": OTHER_OWNER}).status_code == 403
    assert api_client.delete(f"/api/products/{product['id']}").status_code == 204
    assert api_client.get(f"/api/products/{product['id']}").status_code == 404
    assert api_client.delete(f"/api/products/{product['id']}").status_code == 404


def test_assets(api_client):
    product = _create(api_client)
    asset = {"type": "generated", "url": "https://cdn.example/g.png", "mime_type": "image/png", "size": 12}
    api_client.post(f"/api/products/{product['id']}/assets", json=asset)
    response = api_client.post(f"/api/products/{product['id']}/assets", json={**asset, "type": "enhanced"})
    assert response.status_code == 200
    assert len(response.json()["enhanced_images"]) == 1

    everything = api_client.get(f"/api/products/{product['id']}/assets").json()
    generated = api_client.get(f"/api/products/{product['id']}/assets", params={"type": "generated"}).json()
    assert [a["type"] for a in everything] == ["generated", "enhanced"]
    assert [a["url"] for a in generated] == ["https://cdn.example/g.png"]

    bad = api_client.post(f"/api/products/{product['id']}/assets", json={**asset, "type": "thumbnail"})
    assert bad.status_code == 422


##########################################
################ BATCHES #################
##########################################

def test_new_batch_reserves_next_id(api_client):
    assert api_client.post("/api/batches/new", json={"batch_name": "Fruit"}).json() == {"batch_id": "b-1"}
    assert api_client.post("/api/batches/new").json() == {"batch_id": "b-2"}
    assert _create(api_client)["batch_id"] == "b-3"


def test_batch_endpoints(api_client):
    _create(api_client, batch_id="b-5", stage="prompts")
    _create(api_client, batch_id="b-5", stage="prompts")
    _create(api_client, batch_id="b-6")

    listed = api_client.get("/api/products/batch", params={"batch_id": "b-5"}).json()
    assert listed["total"] == 2

    patched = api_client.patch("/api/products/batch", json={"batch_id": "b-5", "updates": {"stage": "enhance"}})
    assert patched.status_code == 200
    assert {p["stage"] for p in patched.json()["items"]} == {"enhance"}

    missing = api_client.patch("/api/products/batch", json={"batch_id": "b-404", "updates": {"stage": "x"}})
    assert missing.status_code == 404

    assert api_client.request("DELETE", "/api/products/batch", json={"batch_id": "b-5"}).status_code == 204
    assert api_client.get("/api/products").json()["total"] == 1
    assert api_client.request("DELETE", "/api/products/batch", json={"batch_id": "b-5"}).status_code == 404


##########################################
################ PROMPTS #################
##########################################

def test_generate_prompts(api_client, llm_backend):
    with_image = _create(api_client, image_config={"base64_image": "QUJD"})
    without_image = _create(api_client)
    foreign = api_client.post(
        "/api/products", json={"image_config": {"base64_image": "QUJD"}}, headers={"X-User-Id": OTHER_OWNER}
    ).json()

    llm_backend["content"] = "Fresh description."
    response = api_client.post(
        "/api/products/generate-prompts",
        json={"product_ids": [with_image["id"], without_image["id"], foreign["id"]]},
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["success_count"], body["total_count"]) == (1, 1)
    assert body["updated_products"][0]["description"] == "Fresh description."


def test_generate_prompts_records_failures(api_client, llm_backend):
    product = _create(api_client, image_config={"base64_image": "QUJD"})
    llm_backend["status"] = 500

    response = api_client.post("/api/products/generate-prompts", json={"product_ids": [product["id"]]})
    assert response.status_code == 502

    stored = api_client.get(f"/api/products/{product['id']}").json()
    assert stored["status"] == "failed"
    assert stored["processing_errors"][0]["stage"] == "prompts"


def test_generate_prompts_needs_candidates(api_client):
    product = _create(api_client)
    assert api_client.post("/api/products/generate-prompts", json={"product_ids": [product["id"]]}).status_code == 404
    assert api_client.post("/api/products/generate-prompts", json={"product_ids": []}).status_code == 422


##########################################
################# UPLOAD #################
##########################################

def test_upload_files_creates_one_product_per_file(api_client, llm_backend):
    files = [
        ("files", ("one.png", _png(10, 10), "image/png")),
        ("files", ("two.png", _png(12, 8), "image/png")),
    ]
    response = api_client.post("/api/upload", files=files, data={"batch_id": "b-3", "batch_name": "Shoot"})
    assert response.status_code == 200, response.text
    results = response.json()["results"]
    assert len(results) == 2
    assert {r["batch_id"] for r in results} == {"b-3"}
    assert {r["description"] for r in results} == {DESCRIPTION}
    assert llm_backend["requests"][0]["messages"][1]["content"][1]["image_url"]["url"].startswith("data:image/png;base64,")

    product = api_client.get(f"/api/products/{results[0]['product_id']}").json()
    assert product["stage"] == "prompts"
    assert product["batch_name"] == "Shoot"
    assert product["original_images"][0]["url"] == results[0]["url"]
    assert api_client.get(results[0]["url"]).content == base64.b64decode(product["original_images"][0]["base64_image"])


def test_upload_files_requires_batch_and_files(api_client):
    files = [("files", ("one.png", _png(4, 4), "image/png"))]
    assert api_client.post("/api/upload", files=files).status_code == 400
    assert api_client.post("/api/upload", data={"batch_id": "b-1"}).status_code == 400


def test_upload_library_image_normalises(api_client):
    response = api_client.post(
        "/api/products/upload",
        files={"file": ("big.png", _png(3000, 1500), "image/png")},
        data={"batch_id": "b-9"},
    )
    assert response.status_code == 200, response.text
    product = response.json()
    original = product["original_images"][0]
    assert (original["width"], original["height"]) == (2000, 1000)
    assert original["mime_type"] == "image/jpeg"
    assert original["url"].startswith("/files/library/") and original["url"].endswith(".jpg")
    assert product["image_config"]["original_image_url"] == original["url"]
    assert product["batch_id"] == "b-9"

    stored = api_client.get(original["url"])
    assert stored.status_code == 200
    assert Image.open(io.BytesIO(stored.content)).size == (2000, 1000)


def test_upload_library_image_rejects_non_images(api_client):
    response = api_client.post("/api/products/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 400
    assert api_client.post("/api/products/upload", headers={"X-API-Key": API_KEY}).status_code == 400


def test_upload_library_image_rejects_decompression_bombs(api_client, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    response = api_client.post("/api/products/upload", files={"file": ("huge.png", _png(10, 10), "image/png")})
    assert response.status_code == 400
    assert "too large" in response.json()["error"]
    assert api_client.get("/api/products").json()["total"] == 0
