"""
Command line tests.

Each test runs ``main()`` against a fresh SQLite file with the built-in
configuration; every call is its own transaction, as in a shell session.
"""

import re

import pytest

from scripts.wms import main


@pytest.fixture
def wms(tmp_path, monkeypatch, capsys):
    """Run the CLI and return (exit code, stdout, stderr)."""
    for name in (
        "WMS_CONFIG_FILE",
        "WMS_DATABASE_URL",
        "WMS_LOG_LEVEL",
        "WMS_NOTIFICATIONS_ENABLED",
        "WMS_NOTIFICATIONS_RECIPIENTS",
        "WMS_LOW_STOCK_THRESHOLD",
        "WMS_ACTOR",
    ):
        monkeypatch.delenv(name, raising=False)
    url = f"sqlite:///{tmp_path / 'cli.db'}"

    def run(*argv: str) -> tuple[int, str, str]:
        capsys.readouterr()
        code = main(["--db-url", url, *argv])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    code, out, _ = run("init-db")
    assert code == 0
    assert "database initialized" in out
    return run


@pytest.fixture
def seeded(wms):
    assert wms("item", "add", "SKU1", "Blue widget")[0] == 0
    assert wms("location", "add", "L1", "Aisle 1")[0] == 0
    assert wms("stock", "in", "SKU1", "L1", "20", "--reference", "PO-1")[0] == 0
    return wms


class TestCatalogCommands:
    def test_item_add_and_get(self, wms):
        code, out, _ = wms("item", "add", "SKU1", "Blue widget", "--description", "10cm")
        assert code == 0
        assert out.strip() == "created item SKU1"

        code, out, _ = wms("item", "get", "SKU1")
        assert out.split() == ["SKU1", "Blue", "widget", "10cm"]

    def test_duplicate_item(self, wms):
        wms("item", "add", "SKU1", "Blue widget")
        code, _, err = wms("item", "add", "SKU1", "Other")
        assert code == 1
        assert err.startswith("error [ITEM_EXISTS]")

    def test_empty_lists(self, wms):
        assert wms("item", "list")[1].strip() == "no items"
        assert wms("location", "list")[1].strip() == "no locations"


class TestStockCommands:
    def test_balances(self, seeded):
        code, out, _ = seeded("stock", "out", "SKU1", "L1", "5")
        assert code == 0
        assert out.startswith("OUT 5 SKU1 @L1")

        assert seeded("stock", "at", "SKU1", "L1")[1].strip() == "15"
        assert seeded("stock", "total", "SKU1")[1].strip() == "15"
        assert seeded("stock", "levels", "SKU1")[1].split() == ["L1", "15"]

    def test_insufficient_stock(self, seeded):
        code, out, err = seeded("stock", "out", "SKU1", "L1", "21")
        assert code == 1
        assert out == ""
        assert err.startswith("error [INSUFFICIENT_STOCK]")
        assert seeded("stock", "at", "SKU1", "L1")[1].strip() == "20"

    def test_invalid_quantity(self, seeded):
        code, _, err = seeded("stock", "in", "SKU1", "L1", "0")
        assert code == 1
        assert "INVALID_QUANTITY" in err

    def test_history(self, seeded):
        seeded("stock", "out", "SKU1", "L1", "2")
        lines = seeded("stock", "history", "SKU1")[1].strip().splitlines()
        assert len(lines) == 2
        assert "ref=PO-1" in lines[1]

    def test_history_of_untouched_item(self, wms):
        wms("item", "add", "SKU9", "Spare")
        assert wms("stock", "history", "SKU9")[1].strip() == "no movements"

    def test_unknown_item(self, wms):
        code, _, err = wms("stock", "total", "NOPE")
        assert code == 1
        assert err.startswith("error [ITEM_NOT_FOUND]")


class TestOrderWorkflow:
    def test_outbound_order_to_done_picklist(self, seeded):
        assert seeded("order", "create", "O1", "outbound")[1].strip() == "created order O1 (OUTBOUND)"
        seeded("order", "add-line", "O1", "SKU1", "L1", "4")

        code, out, _ = seeded("order", "post", "O1")
        assert code == 0
        assert out.strip() == "posted order O1: 1 movement(s), reference ORDER-O1"
        assert seeded("stock", "at", "SKU1", "L1")[1].strip() == "16"

        out = seeded("picklist", "create", "O1")[1]
        match = re.match(r"created picklist (\S+) with 1 task\(s\)", out)
        assert match
        pick_list_id = match.group(1)

        assert seeded("picklist", "start", pick_list_id)[0] == 0
        shown = seeded("picklist", "show", pick_list_id)[1].splitlines()
        task_id = shown[1].split()[0]
        assert "bin=-" in shown[1]

        assert seeded("picklist", "pick", task_id)[1].strip() == f"task {task_id} PICKED"
        assert seeded("picklist", "done", pick_list_id)[1].strip() == f"picklist {pick_list_id} DONE"

    def test_failed_posting_leaves_draft(self, seeded):
        seeded("order", "create", "O1", "OUTBOUND")
        seeded("order", "add-line", "O1", "SKU1", "L1", "15")
        seeded("order", "add-line", "O1", "SKU1", "L1", "15")

        code, _, err = seeded("order", "post", "O1")
        assert code == 1
        assert "INSUFFICIENT_STOCK" in err
        assert "DRAFT" in seeded("order", "show", "O1")[1]
        assert seeded("stock", "at", "SKU1", "L1")[1].strip() == "20"

    def test_cancel_and_list(self, seeded):
        seeded("order", "create", "O1", "INBOUND")
        seeded("order", "create", "O2", "INBOUND")
        seeded("order", "cancel", "O2")

        out = seeded("order", "list", "--status", "CANCELLED")[1]
        assert out.split()[:3] == ["O2", "INBOUND", "CANCELLED"]

    def test_bad_order_type(self, wms):
        code, _, err = wms("order", "create", "O1", "SIDEWAYS")
        assert code == 1
        assert err.startswith("error [INVALID_ORDER_TYPE]")

    def test_unknown_status_filter(self, wms):
        code, _, err = wms("order", "list", "--status", "LOST")
        assert code == 1
        assert err.startswith("error [INVALID_ARGUMENT]")


class TestTopologyCommands:
    def test_bin_suggested_on_picklist(self, seeded):
        seeded("zone", "add", "L1", "Z1", "Fast movers")
        assert seeded("bin", "add", "L1", "Z1", "B1")[1].strip() == "created bin B1 in zone Z1"
        seeded("bin", "assign", "L1", "B1", "SKU1")
        assert seeded("bin", "items", "L1", "B1")[1].split() == ["SKU1", "Blue", "widget"]

        seeded("order", "create", "O1", "OUTBOUND")
        seeded("order", "add-line", "O1", "SKU1", "L1", "1")
        seeded("order", "post", "O1")
        pick_list_id = seeded("picklist", "create", "O1")[1].split()[2]

        assert "bin=B1" in seeded("picklist", "show", pick_list_id)[1]

    def test_non_empty_zone(self, seeded):
        seeded("zone", "add", "L1", "Z1")
        seeded("bin", "add", "L1", "Z1", "B1")
        code, _, err = seeded("zone", "rm", "L1", "Z1")
        assert code == 1
        assert err.startswith("error [ZONE_NOT_EMPTY]")


class TestAuditAndNotify:
    def test_audit_verify(self, seeded):
        assert seeded("audit", "verify")[1].strip() == "audit chain OK"
        events = seeded("audit", "list")[1].strip().splitlines()
        assert "stock_received" in events[0]
        assert events[0].endswith("by system")

    def test_notify_config(self, wms):
        out = wms("notify", "config")[1].strip()
        assert out == "enabled=True recipients=['warehouse@local'] low_stock_threshold=10"

    def test_notify_test(self, wms):
        assert wms("notify", "test")[1].strip() == "sent test notification to warehouse@local"

    def test_notify_test_when_disabled(self, wms, monkeypatch):
        monkeypatch.setenv("WMS_NOTIFICATIONS_ENABLED", "false")
        assert wms("notify", "test")[1].strip() == "notifications are disabled; nothing sent"

    def test_notify_lowstock(self, seeded):
        assert seeded("notify", "lowstock", "SKU1")[1].startswith("ok:")
        out = seeded("notify", "lowstock", "SKU1", "25")[1].strip()
        assert out == "SKU SKU1 stock=20 is below threshold=25"


class TestTrackingCommands:
    def test_set_get_clear(self, wms):
        wms("order", "create", "O1", "OUTBOUND")
        assert wms("tracking", "get", "O1")[1].strip() == "order=O1 tracking=<none>"

        code, out, _ = wms("tracking", "set", "O1", "1Z999", "https://track.example/1Z999")
        assert code == 0
        assert out.strip() == "tracking set: order=O1 tracking=1Z999"
        assert wms("tracking", "get", "O1")[1].strip() == (
            "order=O1 tracking_id=1Z999 url=https://track.example/1Z999 carrier=-"
        )

        wms("tracking", "set", "O1", "1Z998", "", "UPS")
        assert wms("tracking", "get", "O1")[1].strip() == (
            "order=O1 tracking_id=1Z998 url=- carrier=UPS"
        )

        assert wms("tracking", "clear", "O1")[1].strip() == "tracking cleared: order=O1"
        assert wms("tracking", "get", "O1")[1].strip() == "order=O1 tracking=<none>"

    def test_unknown_order(self, wms):
        code, _, err = wms("tracking", "set", "NOPE", "T1")
        assert code == 1
        assert err.startswith("error [ORDER_NOT_FOUND]")


class TestConfigErrors:
    def test_missing_config_file(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "absent.yaml"), "item", "list"])
        assert code == 1
        assert capsys.readouterr().err.startswith("error [CONFIG]")

    def test_disabled_capability(self, tmp_path, capsys, monkeypatch):
        config = tmp_path / "core.yaml"
        config.write_text("name: core\ncapabilities: []\n", encoding="utf-8")
        url = f"sqlite:///{tmp_path / 'core.db'}"
        monkeypatch.delenv("WMS_CONFIG_FILE", raising=False)

        assert main(["--config", str(config), "--db-url", url, "init-db"]) == 0
        capsys.readouterr()
        code = main(["--config", str(config), "--db-url", url, "picklist", "show", "x"])

        assert code == 1
        assert capsys.readouterr().err.startswith("error [CAPABILITY_DISABLED]")
