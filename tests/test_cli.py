import json

import pytest

from wayfarer_enrichment import cli, seed

from tests.fakes import FakeDatabase, FakeGenerationResource, FakeGenerator, FakeStore, narrative_payload


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def wired(monkeypatch, store):
    """Point the CLI at the in-memory store and a canned generator."""
    database = FakeDatabase(store)
    generator = FakeGenerator(default=narrative_payload())
    monkeypatch.setattr(cli, "database_resource_from_env", lambda: database)
    monkeypatch.setattr(cli, "generation_resource_from_env", lambda: FakeGenerationResource(generator))
    monkeypatch.setattr(cli, "_install_signal_handlers", lambda token: None)
    return database, generator


def test_enrich_prints_json_report_and_exits_zero(wired, store, capsys):
    store.add_destination("Porto", "Portugal")
    database, generator = wired

    code = cli.main(["--entity-type", "destination_narrative", "--request-delay", "0"])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["succeeded"] == 1
    assert database.closed


def test_table_report_and_report_file(wired, store, capsys, tmp_path):
    store.add_destination("Porto", "Portugal")
    report_path = tmp_path / "report.json"

    code = cli.main([
        "--entity-type", "destination_narrative",
        "--request-delay", "0",
        "--report-format", "table",
        "--report-path", str(report_path),
    ])

    assert code == 0
    out = capsys.readouterr().out
    assert "1 succeeded" in out
    assert "Porto, Portugal" in out
    assert json.loads(report_path.read_text())["succeeded"] == 1


def test_dry_run_makes_no_calls(wired, store, capsys):
    store.add_destination("Porto", "Portugal")
    _, generator = wired

    code = cli.main(["--entity-type", "destination_narrative", "--dry-run"])

    assert code == 0
    assert json.loads(capsys.readouterr().out)["planned"] == 1
    assert generator.prompts == []


def test_batch_size_defaults_from_environment(wired, store, capsys, monkeypatch):
    for i in range(4):
        store.add_destination(f"Town {i}", "Norway")
    monkeypatch.setenv("ENRICHMENT_BATCH_SIZE", "2")

    cli.main(["--entity-type", "destination_narrative", "--request-delay", "0"])

    assert json.loads(capsys.readouterr().out)["selected"] == 2


def test_invalid_configuration_exits_one(wired):
    assert cli.main(["--entity-type", "itinerary", "--batch-size", "0"]) == 1
    assert cli.main(["--entity-type", "itinerary", "--max-workers", "40"]) == 1


def test_unknown_entity_type_is_a_usage_error(wired):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--entity-type", "reviews"])
    assert exc.value.code == 2


def test_unreachable_store_exits_one(wired, store):
    store.unavailable = True
    assert cli.main(["--entity-type", "itinerary"]) == 1


def test_missing_api_key_exits_one(monkeypatch, store):
    monkeypatch.setattr(cli, "database_resource_from_env", lambda: FakeDatabase(store))
    monkeypatch.setattr(cli, "_install_signal_handlers", lambda token: None)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert cli.main(["--entity-type", "itinerary"]) == 1


def test_seed_cli_loads_snowbird_csv(monkeypatch, store, tmp_path, capsys):
    monkeypatch.setattr(seed, "database_resource_from_env", lambda: FakeDatabase(store))
    path = tmp_path / "snowbird.csv"
    path.write_text(
        "name,country,region,image_url,avg_winter_temp,cost_comparison\n"
        "Merida,Mexico,Yucatan,https://img/merida.jpg,28,40% less than Florida\n"
    )

    assert seed.main(["snowbird", str(path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"snowbird_destinations": 1}
    guide = next(iter(store.snowbird.values()))
    assert guide["avg_winter_temp"] == 28
    assert isinstance(guide["avg_winter_temp"], int)


def test_seed_cli_rejects_csv_without_required_columns(monkeypatch, store, tmp_path):
    monkeypatch.setattr(seed, "database_resource_from_env", lambda: FakeDatabase(store))
    path = tmp_path / "bad.csv"
    path.write_text("title,country\nPorto,Portugal\n")

    assert seed.main(["destinations", str(path)]) == 1
