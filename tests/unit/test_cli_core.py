import pytest

from london_sqft.cli import parse_args, stage_artifact


def test_parse_args_defaults():
    args = parse_args(["all"])
    assert args.command == "all"
    assert args.config_dir == "./config"
    assert args.data_dir == "./data"
    assert args.overlay_config_dir is None
    assert args.force is False
    assert args.strict is False


def test_parse_args_accepts_stage_names_and_flags():
    args = parse_args(["match", "--force", "--strict", "--overlay-config-dir", "config/live"])
    assert args.command == "match"
    assert args.force is True
    assert args.strict is True
    assert args.overlay_config_dir == "config/live"


def test_parse_args_rejects_unknown_command():
    with pytest.raises(SystemExit):
        parse_args(["discover"])


def test_stage_artifacts_live_under_data_dir(bundle, tmp_path):
    assert stage_artifact("parse-transactions", bundle, tmp_path) == tmp_path / "intermediate" / "transactions.json"
    assert stage_artifact("match", bundle, tmp_path) == tmp_path / "intermediate" / "matched.json"
    assert stage_artifact("export", bundle, tmp_path) == tmp_path / "out" / "prices-sqft.json"
    with pytest.raises(ValueError):
        stage_artifact("fetch", bundle, tmp_path)
