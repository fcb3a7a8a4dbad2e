from __future__ import annotations

import pytest


@pytest.fixture()
def processed_file(client, keyword_xlsx) -> int:
    with open(keyword_xlsx, "rb") as f:
        file_id = client.post(
            "/api/files/upload", files={"file": (keyword_xlsx.name, f.read(), "application/octet-stream")}
        ).json()["id"]
    client.put(f"/api/files/{file_id}/column", json={"selected_column": "Keyword"})
    return file_id


def _items(client, **params) -> list[dict]:
    return client.get("/api/results", params=params).json()["items"]


def test_list_results_in_row_order(client, processed_file):
    page = client.get("/api/results", params={"file_id": processed_file}).json()

    assert page["total"] == 4
    assert [r["row_index"] for r in page["items"]] == [1, 3, 4, 5]
    first = page["items"][0]
    assert first["original_value"] == "shoes"
    assert first["selected_value"] == "Shoes"
    assert first["match_score"] == 90
    assert first["selected_suggestion"]["is_selected"] is True


def test_filters(client, processed_file):
    assert len(_items(client, file_id=processed_file, status="processed")) == 4
    assert len(_items(client, file_id=processed_file, status="failed")) == 0
    assert len(_items(client, file_id=processed_file, min_score=90)) == 4
    assert len(_items(client, file_id=processed_file, min_score=91)) == 0
    assert [r["original_value"] for r in _items(client, query="HAT")] == ["hats"]


def test_pagination(client, processed_file):
    page = client.get("/api/results", params={"page": 2, "page_size": 3}).json()
    assert page["total_pages"] == 2
    assert [r["row_index"] for r in page["items"]] == [5]


def test_get_unknown_result_is_404(client):
    response = client.get("/api/results/999")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NotFound"


def test_change_selected_suggestion(client, processed_file):
    result = _items(client, file_id=processed_file)[0]

    response = client.patch(f"/api/results/{result['id']}/suggestion", json={"suggestion_index": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["selected_value"] == "shoes lovers"
    assert body["match_score"] == 70
    assert [s["is_selected"] for s in body["suggestions"]] == [False, True, False, False]


def test_change_selected_suggestion_by_id(client, processed_file):
    result = _items(client, file_id=processed_file)[0]

    response = client.patch(f"/api/results/{result['id']}/suggestion", json={"suggestion_id": "shoes-3"})

    assert response.status_code == 200
    assert response.json()["selected_value"] == "Buy shoes"


def test_invalid_suggestion_index(client, processed_file):
    result = _items(client, file_id=processed_file)[0]

    out_of_range = client.patch(f"/api/results/{result['id']}/suggestion", json={"suggestion_index": 9})
    assert out_of_range.status_code == 400
    assert out_of_range.json()["error"]["code"] == "InvalidSuggestionIndex"

    missing = client.patch(f"/api/results/{result['id']}/suggestion", json={})
    assert missing.status_code == 422


def test_processing_an_already_processed_result_conflicts(client, processed_file):
    result = _items(client, file_id=processed_file)[0]

    response = client.post(f"/api/results/{result['id']}/process")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "AlreadyProcessed"


def test_failed_result_can_be_processed_again(client, provider, keyword_xlsx):
    provider.fail_on.add("hats")
    with open(keyword_xlsx, "rb") as f:
        file_id = client.post(
            "/api/files/upload", files={"file": (keyword_xlsx.name, f.read(), "application/octet-stream")}
        ).json()["id"]
    client.put(f"/api/files/{file_id}/column", json={"selected_column": "Keyword"})
    failed = _items(client, file_id=file_id, status="failed")
    assert [r["original_value"] for r in failed] == ["hats"]
    assert failed[0]["error_message"] == "search failed for hats"

    provider.fail_on.clear()
    response = client.post(f"/api/results/{failed[0]['id']}/process")

    assert response.status_code == 200
    assert response.json()["status"] == "processed"
    assert response.json()["selected_value"] == "Hats"


def test_delete_single_result(client, processed_file):
    result_id = _items(client, file_id=processed_file)[0]["id"]

    assert client.delete(f"/api/results/{result_id}").json()["deleted"] == 1
    assert client.delete(f"/api/results/{result_id}").status_code == 404
    assert len(_items(client, file_id=processed_file)) == 3


def test_bulk_delete(client, processed_file):
    ids = [r["id"] for r in _items(client, file_id=processed_file)][:2]

    response = client.request("DELETE", "/api/results", json={"ids": ids + [999]})

    assert response.status_code == 200
    assert response.json()["deleted"] == 2
    assert len(_items(client, file_id=processed_file)) == 2


def test_bulk_delete_requires_ids(client):
    response = client.request("DELETE", "/api/results", json={"ids": []})
    assert response.status_code == 422
