import pytest

from automin import MinimizerConfig, load_config


def test_defaults():
    config = load_config()
    assert config.strategy == "refine"
    assert config.classifier == "accepting"
    assert config.max_states == 10000
    assert not config.drop_unreachable


def test_from_toml(tmp_path):
    path = tmp_path / "automin.toml"
    path.write_text(
        '[minimizer]\nstrategy = "hopcroft"\nmax_states = 50\nclassifier = "metadata:terminal"\n',
        encoding="utf-8",
    )
    config = load_config(str(path))
    assert config == MinimizerConfig(strategy="hopcroft", max_states=50, classifier="metadata:terminal")


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.toml"))


@pytest.mark.parametrize(
    "data",
    [{"strategy": "magic"}, {"max_states": -1}, {"classifier": "colour"}, {"colour": "red"}],
)
def test_invalid_values(data):
    with pytest.raises(ValueError):
        MinimizerConfig.from_dict(data)


def test_override_skips_unset_values():
    config = MinimizerConfig().override(strategy="hopcroft", max_states=None)
    assert config.strategy == "hopcroft"
    assert config.max_states == 10000


@pytest.mark.parametrize(
    "line",
    ['max_states = "x"', "max_states = true", 'drop_unreachable = "yes"', "strategy = 3", "classifier = 1"],
)
def test_badly_typed_toml_values(tmp_path, line):
    path = tmp_path / "automin.toml"
    path.write_text(f"[minimizer]\n{line}\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))
