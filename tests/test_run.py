import yaml
from PIL import Image

from sample_wfc.run import main


def test_headless_run_writes_files(tmp_path, capsys):
    output = tmp_path / "out.png"
    atlas = tmp_path / "atlas.png"
    saved = tmp_path / "settings.yaml"

    engine = main([
        "--sample", "bordered",
        "--width", "6",
        "--height", "5",
        "--seed", "3",
        "--output", str(output),
        "--atlas", str(atlas),
        "--save-config", str(saved),
    ])

    assert engine.done
    with Image.open(output) as image:
        assert image.size == (6, 5)
    with Image.open(atlas) as image:
        assert image.size == (11, 11)
    with open(saved) as f:
        settings = yaml.safe_load(f)
    assert settings["output_width"] == 6
    assert settings["seed"] == 3

    printed = capsys.readouterr().out
    assert "9 tiles" in printed
    assert "completed after 30 steps" in printed


def test_config_file_and_max_steps(tmp_path):
    config = tmp_path / "run.yaml"
    config.write_text("sample: solid\noutput_width: 4\noutput_height: 4\nseed: 1\n")

    engine = main(["--config", str(config), "--max-steps", "4"])
    assert engine.steps == 4
    assert not engine.done
    assert engine.output.colors() == {(0, 0, 0, 255)}
