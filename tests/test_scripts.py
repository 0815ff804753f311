import json

from scripts import recompute_completeness, seed_business_rules
from dataquality.store import STORE


def test_seed_script_reports_counts(capsys):
    assert seed_business_rules.main(["--format", "json"]) == 0
    first = json.loads(capsys.readouterr().out)

    assert seed_business_rules.main([]) == 0
    second = capsys.readouterr().out

    assert first["created"] == 13
    assert first["statistics"]["total"] == 13
    assert "created=0 skipped=13" in second


def test_recompute_script_json_summary(capsys):
    STORE.create_entity("Guest", {"email": "a@b.co"})

    exit_code = recompute_completeness.main(["--entity-type", "Guest", "--page-size", "5", "--format", "json"])
    summary = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert summary["status"] == "succeeded"
    assert summary["processed"] == 1
    assert summary["page_size"] == 5


def test_recompute_script_text_output_flags_failed_types(capsys):
    exit_code = recompute_completeness.main(["--entity-type", "Spaceship"])
    out = capsys.readouterr().out

    assert exit_code == 1
    assert "status=failed" in out
    assert "Spaceship: failed" in out
    assert "error=CONFIG_NOT_FOUND" in out


def test_recompute_script_rejects_bad_page_size(capsys):
    exit_code = recompute_completeness.main(["--page-size", "-1", "--format", "json"])
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 2
    assert payload["error"]["code"] == "INVALID_PAGE_SIZE"
