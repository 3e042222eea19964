"""Cascade inspection route tests."""


async def test_cascade_lists_invocations_in_order(client):
    await client.post("/api/Teams/create", json={"title": "Alpha", "owner": "u1"})
    response = await client.get("/api/v1/cascades/1")
    assert response.status_code == 200
    body = response.json()
    assert body["root"] == 1
    assert body["running"] is False
    assert [(i["component"], i["operation"]) for i in body["invocations"]] == [
        ("Requesting", "request"), ("Teams", "create"), ("Requesting", "respond"),
    ]
    assert body["invocations"][1]["caused_by"] == [1]
    assert body["invocations"][2]["depth"] == 2


async def test_unknown_cascade_is_404(client):
    response = await client.get("/api/v1/cascades/42")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"
