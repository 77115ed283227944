import json

from thermal_printer.web.common import services

TEXT = [{"type": "text", "value": "Order #12"}, {"type": "cut"}]


def _post(client, payload):
    return client.post("/print/session", data=json.dumps(payload), headers={"Content-Type": "application/json"})


def test_submit_session_success(client, app):
    r = _post(client, {"printerId": "kitchen", "content": TEXT, "priority": 2})
    assert r.status_code == 202, r.get_data(as_text=True)
    body = r.get_json()
    assert body["success"] is True
    assert "timestamp" in body
    data = body["data"]
    assert data["printerId"] == "kitchen"
    assert data["printerName"] == "Kitchen 80mm"
    assert data["status"] == "queued"
    assert data["queuePosition"] == 1
    assert data["estimatedWaitTime"] == 0
    assert r.headers["Location"].endswith(f"/print/status/{data['sessionId']}")

    with app.app_context():
        job = services().queue.get_job(data["sessionId"])
    assert job.content[0] == {"type": "text", "value": "Order #12"}


def test_submit_uses_first_printer_and_given_session_id(client):
    sid = "sess_20240101_120000_ABCDEF12"
    r = _post(client, {"sessionId": sid, "content": TEXT})
    assert r.status_code == 202
    data = r.get_json()["data"]
    assert data["sessionId"] == sid
    assert data["printerId"] == "kitchen"

    r = _post(client, {"sessionId": sid, "content": TEXT})
    assert r.status_code == 400
    assert "already exists" in r.get_json()["message"]


def test_submit_validation_errors(client):
    r = client.post("/print/session", data="x", headers={"Content-Type": "text/plain"})
    assert r.status_code == 415

    r = _post(client, {"content": []})
    assert r.status_code == 400
    body = r.get_json()
    assert body["success"] is False
    assert body["message"].startswith("content")

    r = _post(client, {"sessionId": "bad-id", "content": TEXT})
    assert r.status_code == 400
    assert r.get_json()["message"] == "Invalid sessionId format"

    r = _post(client, {"sessionId": "sess_20240101_120000_ABCDEF12\n", "content": TEXT})
    assert r.status_code == 400
    assert r.get_json()["message"] == "Invalid sessionId format"

    r = _post(client, {"printerId": "ghost", "content": TEXT})
    assert r.status_code == 400
    assert "ghost" in r.get_json()["message"]


def test_content_item_limit_from_app_config(client, app):
    app.config["MAX_CONTENT_ITEMS"] = 1
    r = _post(client, {"content": TEXT})
    assert r.status_code == 400


def test_status_monitor_and_queue(client):
    first = _post(client, {"printerId": "kitchen", "content": TEXT}).get_json()["data"]["sessionId"]
    second = _post(client, {"printerId": "kitchen", "content": TEXT}).get_json()["data"]["sessionId"]

    r = client.get(f"/print/status/{second}")
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["queuePosition"] == 2
    assert data["estimatedWaitTime"] == 10
    assert data["status"] == "queued"

    r = client.get(f"/print/monitor/{first}")
    data = r.get_json()["data"]
    assert data["isRealTime"] is False
    assert data["refreshInterval"] == 2000

    r = client.get("/print/queue/kitchen")
    data = r.get_json()["data"]
    assert [j["sessionId"] for j in data["jobs"]] == [first, second]
    assert [j["queuePosition"] for j in data["jobs"]] == [1, 2]
    assert [j["estimatedWaitTime"] for j in data["jobs"]] == [0, 10]
    assert data["isProcessing"] is False
    assert data["currentJob"] is None

    r = client.get("/print/queue/bar")
    assert r.get_json()["data"]["jobs"] == []

    assert client.get("/print/status/nope").status_code == 404
    assert client.get("/print/queue/ghost").status_code == 404


def test_cancel_and_clear(client):
    a = _post(client, {"printerId": "kitchen", "content": TEXT}).get_json()["data"]["sessionId"]
    _post(client, {"printerId": "kitchen", "content": TEXT})
    _post(client, {"printerId": "kitchen", "content": TEXT})

    r = client.delete(f"/print/cancel/{a}", json={"reason": "customer left"})
    assert r.status_code == 200
    assert r.get_json()["reason"] == "customer left"
    status = client.get(f"/print/status/{a}").get_json()["data"]
    assert status["status"] == "cancelled"
    assert status["error"] == "customer left"

    assert client.delete(f"/print/cancel/{a}").status_code == 404

    r = client.delete("/print/queue/kitchen")
    assert r.status_code == 200
    assert r.get_json()["cancelledJobs"] == 2
    assert client.delete("/print/queue/ghost").status_code == 404


def test_stats_sessions_and_retry(client, app, executor):
    executor.fail_with = RuntimeError("paper jam")
    sid = _post(client, {"printerId": "bar", "content": TEXT}).get_json()["data"]["sessionId"]
    _post(client, {"printerId": "kitchen", "content": TEXT})
    with app.app_context():
        services().queue.process_next("bar")

    stats = client.get("/print/stats").get_json()["data"]
    assert stats["jobsByStatus"]["failed"] == 1
    assert stats["jobsByStatus"]["queued"] == 1
    names = {p["printerId"]: p["printerName"] for p in stats["printerStats"]}
    assert names["bar"] == "Bar 58mm"

    r = client.get("/print/sessions?status=failed")
    data = r.get_json()["data"]
    assert data["total"] == 1
    assert data["sessions"][0]["error"] == "paper jam"
    assert client.get("/print/sessions?limit=abc").status_code == 400

    r = client.post(f"/print/retry/{sid}")
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["originalSessionId"] == sid
    assert data["newSessionId"] != sid
    assert data["priority"] == 1
    assert data["status"] == "queued"

    # only failed sessions can be retried
    r = client.post(f"/print/retry/{data['newSessionId']}")
    assert r.status_code == 400
    assert client.post("/print/retry/nope").status_code == 404


def test_healthz_and_printers(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    body = r.get_json()
    assert body["status"] == "ok"
    assert body["printers_configured"] == 2
    assert body["running"] is False

    r = client.get("/printers")
    data = r.get_json()["data"]
    assert data["count"] == 2
    assert data["printers"][1]["id"] == "bar"

    assert client.get("/printers/bar").get_json()["data"]["name"] == "Bar 58mm"
    assert client.get("/printers/ghost").status_code == 404

    r = client.post("/printers/kitchen/test")
    assert r.get_json()["data"]["connected"] is True
    assert r.get_json()["data"]["testId"].startswith("test_")
