import cv2
import pytest

from dewaff_nodes.cli import build_parser, config_from_args, main


@pytest.fixture
def image_file(uint8_frame, tmp_path):
    path = tmp_path / "input.png"
    cv2.imwrite(str(path), uint8_frame)
    return path


def test_parser_defaults():
    args = build_parser().parse_args(["-i", "a.png"])
    assert args.filter == "DGF"
    assert args.window_size == 15
    assert args.spatial_sigma is None
    assert args.range_sigma == 10.0
    assert args.usm_lambda == 2.0
    assert args.benchmark is None


def test_filter_names_are_case_insensitive():
    args = build_parser().parse_args(["-i", "a.png", "-f", "dnlm", "--patch-size", "5", "-w", "7"])
    config = config_from_args(args)
    assert config.acronym == "DNLM"
    assert config.filter_kwargs()["patch_size"] == 5


@pytest.mark.parametrize("argv", [
    [],
    ["-i", "a.png", "-v", "b.avi"],
    ["-i", "a.png", "-f", "XYZ"],
    ["-i", "a.png", "-b", "0"],
])
def test_bad_arguments_exit(argv):
    with pytest.raises(SystemExit):
        main(argv)


def test_process_image(image_file):
    assert main(["-i", str(image_file), "-f", "DBF", "-w", "5"]) == 0
    assert (image_file.parent / "input_DBF.png").exists()


def test_process_image_explicit_output(image_file, tmp_path):
    output = tmp_path / "out.png"
    assert main(["-i", str(image_file), "-w", "5", "-o", str(output)]) == 0
    assert cv2.imread(str(output)) is not None


def test_invalid_window_size_fails(image_file):
    assert main(["-i", str(image_file), "-w", "4"]) == 1


def test_missing_input_fails(tmp_path):
    assert main(["-i", str(tmp_path / "nope.png")]) == 1


def test_benchmark_prints_table(image_file, capsys):
    assert main(["-i", str(image_file), "-w", "5", "-b", "2"]) == 0
    out = capsys.readouterr().out
    assert "Benchmark mode" in out
    assert "Time [s]" in out
    assert "| 2" in out
