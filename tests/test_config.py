import json

import pytest

from thermal_printer import create_app
from thermal_printer.core.config import PrinterConfigStore, env_bool, get_config_path, save_config


def test_missing_config_writes_default(tmp_path):
    cfg_path = tmp_path / "sub" / "printer-config.json"
    store = PrinterConfigStore(path=str(cfg_path))
    printers = store.get_all_printers()
    assert [p["id"] for p in printers] == ["default-printer"]
    assert store.get_default_settings()["charPerLine"] == 48
    assert json.loads(cfg_path.read_text())["printers"][0]["id"] == "default-printer"


def test_store_lookups(tmp_path, printer_cfg):
    cfg_path = tmp_path / "cfg.json"
    save_config(printer_cfg, path=str(cfg_path))
    store = PrinterConfigStore(path=str(cfg_path))
    assert store.get_printer_config("bar")["width"] == 58
    assert store.get_printer_config("ghost") is None
    assert store.get_printer_name("kitchen") == "Kitchen 80mm"
    assert store.get_printer_name("ghost") == "Unknown"


def test_save_and_reload(tmp_path, printer_cfg):
    cfg_path = tmp_path / "cfg.json"
    store = PrinterConfigStore(path=str(cfg_path))
    printer_cfg["printers"] = printer_cfg["printers"][:1]
    store.save(printer_cfg)
    assert not (tmp_path / "cfg.json.tmp").exists()
    assert [p["id"] for p in store.reload()["printers"]] == ["kitchen"]


def test_invalid_json_raises(tmp_path):
    cfg_path = tmp_path / "cfg.json"
    cfg_path.write_text("{not json")
    with pytest.raises(RuntimeError):
        PrinterConfigStore(path=str(cfg_path)).load()


def test_env_overrides(tmp_path, monkeypatch, printer_cfg):
    cfg_path = tmp_path / "env.json"
    save_config(printer_cfg, path=str(cfg_path))
    monkeypatch.setenv("THERMALPRINTER_CONFIG_PATH", str(cfg_path))
    monkeypatch.setenv("THERMALPRINTER_WAIT_PER_JOB", "4")
    monkeypatch.setenv("THERMALPRINTER_MEASURED_WAIT", "yes")
    assert get_config_path() == str(cfg_path)
    assert env_bool("THERMALPRINTER_MEASURED_WAIT") is True

    app = create_app(register_worker=False)
    assert app.config["WAIT_PER_JOB"] == 4.0
    assert app.config["MEASURED_WAIT"] is True
    client = app.test_client()
    r = client.get("/printers")
    assert r.get_json()["data"]["count"] == 2


def test_healthz_degraded_without_printers():
    app = create_app(config_overrides={"PRINTER_CONFIG": {"printers": []}}, register_worker=False)
    client = app.test_client()
    body = client.get("/healthz").get_json()
    assert body["status"] == "degraded"
    assert body["reason"] == "no_printers"

    r = client.post("/print/session", json={"content": [{"type": "cut"}]})
    assert r.status_code == 400
    assert r.get_json()["message"] == "No printer configured"
