# tests/api/test_presentations_api.py


def test_list_presentations(client):
    presentations = client.get("/api/presentations").json()
    assert [p["title"] for p in presentations] == [
        "Cardiomax Treatment Protocol",
        "Glucobalance Therapy",
    ]
    assert presentations[0]["slides"] == 6


def test_presentation_data_has_ordered_slides(client):
    body = client.get("/api/presentations/presentation-2").json()
    assert body["success"] is True
    assert body["presentation"]["id"] == "presentation-2"
    assert [s["order"] for s in body["slides"]] == list(range(6))
    assert body["slides"][0]["title"] == "Slide 1: Glucobalance Introduction"


def test_unknown_presentation(client):
    response = client.get("/api/presentations/presentation-404")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "Presentation not found with ID: presentation-404",
    }


def test_marketing_presentation(client):
    body = client.get("/api/presentations/marketing").json()
    assert body["success"] is True
    assert body["presentation"]["id"] == "presentation-1"


def test_create_presentation(client):
    response = client.post(
        "/api/presentations",
        json={"title": "Lipidex", "description": "Statin launch deck"},
    )
    assert response.status_code == 200
    presentation_id = response.json()["presentationId"]

    body = client.get(f"/api/presentations/{presentation_id}").json()
    assert body["presentation"]["title"] == "Lipidex"
    assert body["presentation"]["slides"] == 5
    assert body["slides"][0]["title"] == "Introduction to Lipidex"
    assert len(client.get("/api/presentations").json()) == 3


def test_create_presentation_requires_title(client):
    response = client.post("/api/presentations", json={"title": "   "})
    assert response.status_code == 422


def test_add_slides(client):
    response = client.post(
        "/api/presentations/presentation-1/slides",
        json={"slides": [
            {"title": "Slide 7: References", "content": "Trial citations", "order": 6},
        ]},
    )
    assert response.status_code == 200
    assert response.json()["slides"][0]["presentationId"] == "presentation-1"

    body = client.get("/api/presentations/presentation-1").json()
    assert body["presentation"]["slides"] == 7
    assert body["slides"][-1]["title"] == "Slide 7: References"


def test_add_slides_to_unknown_presentation(client):
    response = client.post(
        "/api/presentations/presentation-404/slides",
        json={"slides": [{"title": "Orphan"}]},
    )
    assert response.status_code == 404
