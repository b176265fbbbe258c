from pathlib import Path

from reprint.infra.config import ReprintConfig, load_config


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    cfg = load_config(str(tmp_path / "absent.yaml"))
    assert cfg == ReprintConfig()
    assert load_config(None) == ReprintConfig()
    assert [d.id for d in cfg.devices] == ["r1", "r2", "r3"]
    assert cfg.simulation.tick_interval_s == 1.1
    assert cfg.simulation.start_progress == 18
    assert cfg.simulation.auto_reset_delay_s == 30
    assert len(cfg.faults["r1"]) == 3


def test_yaml_overrides_and_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "panel.yaml"
    path.write_text(
        "\n".join(
            [
                "network:",
                "  api_port: 9000",
                "  legacy_flag: true",
                "simulation:",
                "  seed: 7",
                "  auto_reset_delay_s: 5",
                "devices:",
                "  - id: a",
                "    name: Alpha",
                "  - id: b",
                "faults: {}",
                "material: ABS",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.network.api_port == 9000
    assert cfg.simulation.seed == 7
    assert cfg.simulation.auto_reset_delay_s == 5
    assert cfg.simulation.tick_interval_s == 1.1
    assert [(d.id, d.name) for d in cfg.devices] == [("a", "Alpha"), ("b", "b")]
    assert cfg.faults == {}
    assert cfg.material == "ABS"


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == ReprintConfig()


def test_shipped_config_loads() -> None:
    shipped = Path(__file__).resolve().parents[3] / "config" / "reprint.yaml"
    cfg = load_config(str(shipped))
    assert cfg == ReprintConfig()
