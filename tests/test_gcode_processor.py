import io
import json

import pytest

from cancel_preprocessor.config.processing_config import ConfigManager, ProcessingConfig
from cancel_preprocessor.core.canonical import HEADER_MARKER
from cancel_preprocessor.dialects.base_dialect import Dialect
from cancel_preprocessor.gcode_processor import GCodeProcessor, ProcessStatus
from cancel_preprocessor.utils.errors import (
    DiagnosticCode, UnrecognizedDialectError, UnseekableInputError,
)

from conftest import read_fixture, run, strip_inserted

# fixture, dialect, object name, bounding min, bounding max, center
FIXTURES = [
    ("slic3r.gcode", Dialect.SLIC3R, "cube_stl_id_0_copy_0", (10, 10), (20, 20), "15.000,15.000"),
    ("orcaslicer.gcode", Dialect.ORCASLICER, "15", (30, 40), (35, 48), "32.500,44.000"),
    ("cura.gcode", Dialect.CURA, "cube_stl", (100, 100), (110, 105), "105.000,102.500"),
    ("ideamaker.gcode", Dialect.IDEAMAKER, "part_stl", (50, 60), (62, 70), "56.000,65.000"),
    ("m486.gcode", Dialect.M486, "Benchy", (-5, -5), (5, 15), "0.000,5.000"),
]

CUBE = (
    "; generated by PrusaSlicer 2.6.0\n"
    "G90\n"
    "M83\n"
    "; printing object CUBE\n"
    "G1 X10 Y10 E1\n"
    "G1 X20 Y20 E1\n"
    "; stop printing object CUBE\n"
    "G1 X0 Y0\n"
)


def define_line(output, name):
    prefix = f"EXCLUDE_OBJECT_DEFINE NAME={name} "
    return next(line for line in output.splitlines() if line.startswith(prefix))


def polygon_of(define):
    return [tuple(point) for point in json.loads(define.split("POLYGON=", 1)[1])]


@pytest.mark.parametrize("fixture, dialect, name, low, high, center", FIXTURES)
def test_dialect_fixture(fixture, dialect, name, low, high, center):
    output, result = run(read_fixture(fixture), ConfigManager.bbox())

    assert result.status == ProcessStatus.PROCESSED
    assert result.dialect == dialect
    assert result.object_count == 1
    record = result.registry.get(name)
    assert record.bounding_min.to_tuple() == low
    assert record.bounding_max.to_tuple() == high

    define = define_line(output, name)
    assert f" CENTER={center} " in define
    assert set(polygon_of(define)) == {low, (high[0], low[1]), high, (low[0], high[1])}
    assert f"EXCLUDE_OBJECT_START NAME={name}\n" in output
    assert f"EXCLUDE_OBJECT_END NAME={name}\n" in output


@pytest.mark.parametrize("fixture", [f[0] for f in FIXTURES])
def test_original_content_is_preserved(fixture):
    text = read_fixture(fixture)
    output, _ = run(text)
    assert strip_inserted(output) == text


@pytest.mark.parametrize("fixture", [f[0] for f in FIXTURES])
def test_output_is_deterministic(fixture):
    text = read_fixture(fixture)
    assert run(text)[0] == run(text)[0]


def test_cube_scenario():
    output, result = run(CUBE)
    lines = output.splitlines()

    record = result.registry.get("CUBE")
    assert record.bounding_min.to_tuple() == (10, 10)
    assert record.bounding_max.to_tuple() == (20, 20)
    assert record.center.to_tuple() == (15, 15)

    assert lines[:4] == [
        "; generated by PrusaSlicer 2.6.0",
        HEADER_MARKER,
        "; 1 known objects",
        define_line(output, "CUBE"),
    ]
    assert define_line(output, "CUBE").startswith("EXCLUDE_OBJECT_DEFINE NAME=CUBE CENTER=15.000,15.000 ")

    first_move = lines.index("G1 X10 Y10 E1")
    assert lines[first_move - 1] == "EXCLUDE_OBJECT_START NAME=CUBE"
    assert lines[first_move - 2] == "; printing object CUBE"

    stop = lines.index("; stop printing object CUBE")
    assert lines[stop - 1] == "EXCLUDE_OBJECT_END NAME=CUBE"


def test_hull_outline():
    output, _ = run(read_fixture("slic3r.gcode"))
    polygon = polygon_of(define_line(output, "cube_stl_id_0_copy_0"))
    assert polygon[0] == polygon[-1]
    assert set(polygon) == {(10, 10), (20, 10), (20, 20), (10, 20)}


def test_polygon_has_no_spaces():
    output, _ = run(read_fixture("cura.gcode"))
    define = define_line(output, "cube_stl")
    assert " " not in define.split("POLYGON=", 1)[1]


def test_revisited_object_gets_markers_per_visit():
    output, result = run(read_fixture("cura.gcode"))
    assert output.count("EXCLUDE_OBJECT_START NAME=cube_stl") == 2
    assert output.count("EXCLUDE_OBJECT_END NAME=cube_stl") == 2
    assert result.registry.get("cube_stl").visits == 2

    lines = output.splitlines()
    assert lines[lines.index(";TIME_ELAPSED:10.5") - 1] == "EXCLUDE_OBJECT_END NAME=cube_stl"
    assert lines[lines.index(";MESH:NONMESH") - 1] == "EXCLUDE_OBJECT_END NAME=cube_stl"


def test_header_follows_leading_comments():
    output, _ = run(read_fixture("cura.gcode"))
    lines = output.splitlines()
    assert lines[3] == HEADER_MARKER
    assert lines[6] == "M140 S60"


def test_unclosed_object_is_closed_at_end_of_file():
    text = "; generated by PrusaSlicer\nM83\n; printing object CUBE\nG1 X10 Y10 E1\nG1 X20 Y20 E1"
    output, result = run(text)
    assert result.status == ProcessStatus.PROCESSED
    assert output.endswith("G1 X20 Y20 E1\nEXCLUDE_OBJECT_END NAME=CUBE\n")


def test_implicit_close_between_objects():
    text = (
        "; generated by SuperSlicer\n"
        "M83\n"
        "; printing object A\n"
        "G1 X1 Y1 E1\n"
        "; printing object B\n"
        "G1 X5 Y5 E1\n"
        "; stop printing object B\n"
    )
    output, result = run(text)
    lines = output.splitlines()
    b_start = lines.index("; printing object B")
    assert lines[b_start - 1] == "EXCLUDE_OBJECT_END NAME=A"
    assert lines[b_start + 1] == "EXCLUDE_OBJECT_START NAME=B"

    diagnostics = [d for d in result.diagnostics if d.code == DiagnosticCode.IMPLICIT_OBJECT_CLOSE]
    assert [d.line_number for d in diagnostics] == [5]
    assert strip_inserted(output) == text


def test_no_markers_passes_file_through():
    text = "; generated by PrusaSlicer\nG28\nG1 X10 Y10 E1\n"
    output, result = run(text)
    assert result.status == ProcessStatus.NO_OBJECTS_FOUND
    assert not result.modified
    assert output == text
    assert [d.code for d in result.diagnostics] == [DiagnosticCode.NO_OBJECTS_FOUND]


def test_no_markers_with_empty_header():
    text = "; generated by PrusaSlicer\nG28\n"
    output, result = run(text, ProcessingConfig(passthrough_when_empty=False))
    assert result.status == ProcessStatus.NO_OBJECTS_FOUND
    assert result.modified
    assert output == f"; generated by PrusaSlicer\n{HEADER_MARKER}\n; 0 known objects\nG28\n"


def test_already_processed_file_is_passed_through():
    output, _ = run(read_fixture("m486.gcode"))
    again, result = run(output)
    assert result.status == ProcessStatus.ALREADY_PROCESSED
    assert again == output


def test_legacy_define_marker_is_recognized():
    text = "G28\nDEFINE_OBJECT NAME=part\nG1 X1 Y1 E1\n"
    output, result = run(text)
    assert result.status == ProcessStatus.ALREADY_PROCESSED
    assert result.dialect is None
    assert output == text


def test_unrecognized_dialect_writes_nothing():
    output = io.StringIO()
    with pytest.raises(UnrecognizedDialectError):
        GCodeProcessor().process(io.StringIO("G28\nG1 X1 Y1 E1\n"), output)
    assert output.getvalue() == ""


def test_detection_is_limited_to_prefix():
    text = "G28\n" * 5 + "; generated by PrusaSlicer\n"
    with pytest.raises(UnrecognizedDialectError):
        run(text, ProcessingConfig(detect_lines=5))
    assert run(text, ProcessingConfig(detect_lines=6))[1].dialect == Dialect.SLIC3R


def test_unseekable_input_is_rejected():
    class Pipe(io.StringIO):
        def seekable(self):
            return False

    with pytest.raises(UnseekableInputError):
        GCodeProcessor().process(Pipe(CUBE), io.StringIO())


def test_crlf_line_endings_are_preserved():
    text = CUBE.replace("\n", "\r\n")
    output, _ = run(text)
    assert strip_inserted(output) == text
    assert output.count("\n") == output.count("\r\n")
    assert "EXCLUDE_OBJECT_START NAME=CUBE\r\n" in output


def test_name_collision_merges_objects():
    text = (
        "; generated by PrusaSlicer\n"
        "M83\n"
        "; printing object a.b\n"
        "G1 X1 Y1 E1\n"
        "; stop printing object a.b\n"
        "; printing object a b\n"
        "G1 X9 Y9 E1\n"
        "; stop printing object a b\n"
    )
    output, result = run(text)
    assert result.object_count == 1
    assert result.registry.get("a_b").bounding_max.to_tuple() == (9, 9)
    assert [d.line_number for d in result.diagnostics
            if d.code == DiagnosticCode.NAME_COLLISION] == [6]


def test_layer_filter_limits_hull_points_only():
    text = (
        "; generated by PrusaSlicer\n"
        "M83\n"
        "; printing object part\n"
        "G1 X10 Y10 E1\n"
        "G1 X20 Y10 E1\n"
        "G1 X20 Y20 E1\n"
        "G1 X10 Y20 E1\n"
        "; stop printing object part\n"
        "; printing object part\n"
        "G1 X30 Y30 E1\n"
        "; stop printing object part\n"
    )
    output, result = run(text, ConfigManager.fast())
    record = result.registry.get("part")
    assert record.visits == 2
    assert record.bounding_max.to_tuple() == (30, 30)
    assert set(polygon_of(define_line(output, "part"))) == {(10, 10), (20, 10), (20, 20), (10, 20)}


def test_malformed_motion_line_is_reported_and_kept():
    text = (
        "; generated by PrusaSlicer\n"
        "M83\n"
        "; printing object part\n"
        "G1 X1..5 Y2 E1\n"
        "G1 X4 Y6 E1\n"
        "; stop printing object part\n"
    )
    output, result = run(text)
    assert result.registry.get("part").bounding_min.to_tuple() == (4, 6)
    assert [d.line_number for d in result.diagnostics
            if d.code == DiagnosticCode.MALFORMED_MOTION_LINE] == [4]
    assert strip_inserted(output) == text


def test_object_without_moves_is_defined_by_name():
    text = "; generated by PrusaSlicer\n; printing object ghost\n; stop printing object ghost\n"
    output, _ = run(text)
    assert "EXCLUDE_OBJECT_DEFINE NAME=ghost\n" in output


def test_opener_source(tmp_path):
    path = tmp_path / "cube.gcode"
    path.write_text(CUBE)
    output = io.StringIO(newline="")
    result = GCodeProcessor().process(lambda: open(path, "r", newline=""), output)
    assert result.status == ProcessStatus.PROCESSED
    assert strip_inserted(output.getvalue()) == CUBE


def test_summary():
    processor = GCodeProcessor(ConfigManager.bbox())
    processor.process(io.StringIO(read_fixture("ideamaker.gcode"), newline=""), io.StringIO())
    summary = processor.get_summary()
    assert summary['status'] == "processed"
    assert summary['dialect'] == "ideamaker"
    assert summary['config'] == "bbox"
    assert summary['total_objects'] == 1
    assert summary['bounding_box'] == {'min': (50, 60), 'max': (62, 70)}


PRUSA_NAMES = ["cube_stl_id_0_copy_0", "cube_stl_id_1_copy_0"]


def test_standalone_m486_labels_name_objects():
    output, result = run(read_fixture("prusa_m486.gcode"))
    assert result.dialect == Dialect.M486
    assert result.registry.names() == PRUSA_NAMES
    assert result.registry.get(PRUSA_NAMES[1]).bounding_max.to_tuple() == (50, 20)
    for name in PRUSA_NAMES:
        assert define_line(output, name)
    assert "NAME=0" not in output and "NAME=1" not in output
    assert strip_inserted(output) == read_fixture("prusa_m486.gcode")


def test_m486_label_block_gets_no_markers():
    output, _ = run(read_fixture("prusa_m486.gcode"))
    lines = output.splitlines()
    block_end = lines.index("M486 S-1")
    assert not any(line.startswith(("EXCLUDE_OBJECT_START", "EXCLUDE_OBJECT_END"))
                   for line in lines[:block_end + 1])
    assert output.count(f"EXCLUDE_OBJECT_START NAME={PRUSA_NAMES[0]}\n") == 2
    assert output.count(f"EXCLUDE_OBJECT_END NAME={PRUSA_NAMES[0]}\n") == 2
    assert output.count(f"EXCLUDE_OBJECT_START NAME={PRUSA_NAMES[1]}\n") == 1
    assert output.count(f"EXCLUDE_OBJECT_END NAME={PRUSA_NAMES[1]}\n") == 1


def test_m486_first_layer_hull_skips_label_block():
    output, result = run(read_fixture("prusa_m486.gcode"), ConfigManager.fast())
    record = result.registry.get(PRUSA_NAMES[0])
    assert record.visits == 3
    assert record.layers == 2
    assert record.bounding_max.to_tuple() == (30, 30)
    assert set(polygon_of(define_line(output, PRUSA_NAMES[0]))) == {(10, 10), (20, 10), (20, 20), (10, 20)}


def test_m486_label_that_collides_keeps_the_id():
    text = (
        "M486 T2\n"
        "M83\n"
        'M486 S0 A"part"\n'
        "G1 X1 Y1 E1\n"
        'M486 S1 A"part"\n'
        "G1 X5 Y5 E1\n"
        "M486 S-1\n"
    )
    output, result = run(text)
    assert result.registry.names() == ["part", "1"]
    assert [d.line_number for d in result.diagnostics
            if d.code == DiagnosticCode.NAME_COLLISION] == [5]
    assert "EXCLUDE_OBJECT_START NAME=1\n" in output
    assert strip_inserted(output) == text
