import json

from automin.main import main
from automin.parsing import write_automaton
from automin.presets import validation_lifecycle


def test_preset_to_file(tmp_path, capsys):
    out = tmp_path / "css_min.json"
    assert main(["--preset", "css", "-o", str(out)]) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert len(data["states"]) == 10
    printed = capsys.readouterr().out
    assert "States: 12 -> 10" in printed
    assert "class" in printed


def test_file_input_default_output_name(tmp_path, twin_accepting):
    src = tmp_path / "twins.json"
    write_automaton(twin_accepting, str(src))
    assert main([str(src), "--strategy", "hopcroft"]) == 0
    data = json.loads((tmp_path / "twins_min.json").read_text(encoding="utf-8"))
    assert list(data["states"]) == ["S", "A", "C"]
    assert data["metrics"]["strategy"] == "hopcroft"


def test_state_limit_is_reported(tmp_path, capsys):
    src = tmp_path / "validation.json"
    write_automaton(validation_lifecycle(), str(src))
    assert main([str(src), "--max-states", "2"]) == 1
    assert "limit is 2" in capsys.readouterr().err


def test_missing_input(tmp_path, capsys):
    assert main([str(tmp_path / "absent.json")]) == 1
    assert main([]) == 2


def test_bad_classifier(capsys):
    assert main(["--preset", "css", "--classifier", "colour"]) == 1
    assert "bad configuration" in capsys.readouterr().err


def test_plot(tmp_path):
    png = tmp_path / "plot.png"
    assert main(["--preset", "validation", "--plot", str(png), "-o", str(tmp_path / "v.xml")]) == 0
    assert png.stat().st_size > 0
    assert (tmp_path / "v.xml").exists()


def test_non_utf8_input_is_reported(tmp_path, capsys):
    src = tmp_path / "latin1.json"
    src.write_bytes('{"name": "café", "states": {}}'.encode("latin-1"))
    assert main([str(src)]) == 1
    assert "not UTF-8" in capsys.readouterr().err


def test_badly_typed_config_is_reported(tmp_path, capsys):
    config = tmp_path / "automin.toml"
    config.write_text('[minimizer]\nmax_states = "x"\n', encoding="utf-8")
    assert main(["--preset", "css", "--config", str(config)]) == 1
    assert "bad configuration" in capsys.readouterr().err
