import numpy as np
import pytest
import yaml
from PIL import Image

from sample_wfc.config import RunConfig, load_config, save_config
from sample_wfc.errors import InvalidConfiguration


def test_defaults():
    config = RunConfig()
    assert (config.output_width, config.output_height) == (32, 32)
    assert config.scan_order == "column"
    assert config.placeholder == "magenta"


def test_load_config(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("sample: bordered-large\noutput_width: 16\nseed: 4\nscan_order: row\n")

    config = load_config(str(path))
    assert config.sample == "bordered-large"
    assert config.output_width == 16
    assert config.output_height == 32
    assert config.seed == 4
    assert config.scan_order == "row"


def test_empty_config_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path)) == RunConfig()


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("output_width: 8\ntile_weights: true\n")
    with pytest.raises(InvalidConfiguration, match="tile_weights"):
        load_config(str(path))


def test_non_mapping_is_rejected(tmp_path):
    path = tmp_path / "run.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(InvalidConfiguration):
        load_config(str(path))


def test_save_and_load(tmp_path):
    path = tmp_path / "saved.yaml"
    config = RunConfig(sample="solid", output_width=9, seed=3, render=True)
    save_config(config, str(path))

    with open(path) as f:
        assert yaml.safe_load(f)["output_width"] == 9
    assert load_config(str(path)) == config


def test_overrides_skip_none():
    config = RunConfig(output_width=10).with_overrides(output_width=None, output_height=6, seed=None)
    assert (config.output_width, config.output_height) == (10, 6)
    assert config.seed is None


@pytest.mark.parametrize("kwargs", [
    {"output_width": 0},
    {"output_height": -3},
    {"scan_order": "spiral"},
    {"fps": 0},
])
def test_invalid_values(kwargs):
    with pytest.raises(InvalidConfiguration):
        RunConfig(**kwargs)


def test_builtin_samples():
    assert RunConfig().build_sample().width == 5
    assert RunConfig(sample="bordered-large").build_sample().width == 11
    solid = RunConfig(sample="solid", sample_size=4, sample_color="red").build_sample()
    assert solid.width == 4
    assert solid.colors() == {(255, 0, 0, 255)}
    wide_ring = RunConfig(sample_size=7, sample_border=2).build_sample()
    assert wide_ring.color_at(1, 1) == (255, 255, 255, 255)


def test_image_sample(tmp_path):
    path = tmp_path / "tiny.png"
    Image.fromarray(np.zeros((3, 4, 4), dtype=np.uint8)).save(path)
    sample = RunConfig(sample=str(path)).build_sample()
    assert (sample.width, sample.height) == (4, 3)


def test_missing_sample():
    with pytest.raises(InvalidConfiguration):
        RunConfig(sample="does/not/exist.png").build_sample()
