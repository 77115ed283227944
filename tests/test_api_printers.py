import json

import pytest

from thermal_printer import create_app
from thermal_printer.core.config import save_config
from thermal_printer.web.common import services

NEW_PRINTER = {
    "id": "terrace",
    "name": "Terrace 58mm",
    "type": "epson",
    "connectionType": "network",
    "address": "10.0.0.9:9100",
    "charPerLine": 32,
    "printableWidth": 48,
}


@pytest.fixture
def cfg_path(tmp_path, printer_cfg):
    path = tmp_path / "printer-config.json"
    save_config(printer_cfg, path=str(path))
    return path


@pytest.fixture
def file_client(cfg_path, executor):
    app = create_app(
        config_overrides={"PRINTER_CONFIG_PATH": str(cfg_path), "TESTING": True},
        register_worker=False,
        executor=executor,
    )
    return app, app.test_client()


def test_update_config_persists_and_adds_queue(file_client, cfg_path, printer_cfg):
    app, client = file_client
    printers = printer_cfg["printers"] + [NEW_PRINTER]
    r = client.post("/printers/config", json={"printers": printers})
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()
    assert body["addedPrinters"] == ["kitchen", "bar", "terrace"]
    # omitted defaultSettings keep the current ones
    assert body["data"]["defaultSettings"] == printer_cfg["defaultSettings"]

    on_disk = json.loads(cfg_path.read_text())
    assert [p["id"] for p in on_disk["printers"]] == ["kitchen", "bar", "terrace"]
    assert on_disk["printers"][2]["charPerLine"] == 32

    assert client.get("/printers/terrace").get_json()["data"]["name"] == "Terrace 58mm"
    r = client.post("/print/session", json={"printerId": "terrace", "content": [{"type": "cut"}]})
    assert r.status_code == 202

    # queues already exist now, so a second save adds nothing
    r = client.post("/printers/config", json={"printers": printers})
    assert r.get_json()["addedPrinters"] == []


def test_update_config_rejects_bad_payloads(file_client, cfg_path):
    _, client = file_client
    before = cfg_path.read_text()

    r = client.post("/printers/config", data="x", headers={"Content-Type": "text/plain"})
    assert r.status_code == 415

    r = client.post("/printers/config", json={"printers": [{"name": "no id"}]})
    assert r.status_code == 400
    assert r.get_json()["message"].startswith("printers.0.id")

    r = client.post("/printers/config", json={"printers": [{"id": "a"}, {"id": "a"}]})
    assert r.status_code == 400
    assert "unique" in r.get_json()["message"]

    r = client.post("/printers/config", json={"printers": [{"id": "a", "connectionType": "bluetooth"}]})
    assert r.status_code == 400

    assert cfg_path.read_text() == before


def test_reload_picks_up_file_changes(file_client, cfg_path, printer_cfg):
    app, client = file_client
    assert client.get("/printers").get_json()["data"]["count"] == 2

    printer_cfg["printers"].append(NEW_PRINTER)
    save_config(printer_cfg, path=str(cfg_path))
    # cached until reloaded
    assert client.get("/printers").get_json()["data"]["count"] == 2

    r = client.post("/printers/reload")
    assert r.status_code == 200
    body = r.get_json()
    assert [p["id"] for p in body["data"]["printers"]] == ["kitchen", "bar", "terrace"]
    assert "terrace" in body["addedPrinters"]
    with app.app_context():
        assert services().queue.get_printer_queue("terrace") is not None


def test_reload_reports_broken_file(file_client, cfg_path):
    _, client = file_client
    cfg_path.write_text("{broken")
    r = client.post("/printers/reload")
    assert r.status_code == 500
    assert r.get_json()["success"] is False


def test_connection_test_carries_test_id(client, app):
    r = client.post("/printers/bar/test")
    data = r.get_json()["data"]
    assert data["connected"] is True
    assert data["printer"] == "bar"
    prefix, _, rand = data["testId"].split("_")
    assert prefix == "test"
    assert len(rand) == 6
    with app.app_context():
        assert not services().session_ids.is_valid(data["testId"])

    other = client.post("/printers/bar/test").get_json()["data"]["testId"]
    assert other != data["testId"]
