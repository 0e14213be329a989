from pathlib import Path

from app.scraper import config
from app.scraper.filenames import (
    build_filename,
    candidate_stem,
    finalize_download,
    fit_stem,
    resolve_collision,
)
from app.scraper.parser import ExtractedRow
from tests.fake_portal import fir_cells

UNSAFE = set('\\/:*?"<>|')


def test_candidate_uses_fixed_field_order_and_reference_number() -> None:
    cells = fir_cells(7, reference="0007/2024/PUNE", station="Kothrud", district="PUNE CITY")

    assert candidate_stem(cells) == "0007_01_01_2024_Kothrud_0007_PUNE CITY"


def test_empty_reference_uses_placeholder() -> None:
    cells = fir_cells(3, reference="")

    assert candidate_stem(cells).split("_")[-2] == "unknown"
    assert build_filename(cells).endswith("_unknown_PUNE CITY.pdf")


def test_reference_with_empty_first_segment_uses_placeholder() -> None:
    assert "_unknown_" in candidate_stem(fir_cells(3, reference="/2024"))


def test_missing_fields_use_placeholders() -> None:
    assert candidate_stem([""] * 10) == "field2_field3_field4_unknown_field6"
    assert candidate_stem([]) == "field2_field3_field4_unknown_field6"


def test_unsafe_characters_and_whitespace_are_cleaned() -> None:
    cells = fir_cells(1, station='Bund  Garden:\t"East" <1>|?*', district="A\\B")

    name = build_filename(cells)

    assert not UNSAFE & set(name[:-4])
    assert "Bund Garden_ _East_ _1____" in name


def test_long_names_drop_trailing_segments_not_partial_ones() -> None:
    cells = fir_cells(1, station="स" * 30, district="D" * 50)

    name = build_filename(cells, max_bytes=120)

    assert len(name.encode("utf-8")) <= 120
    assert name == "0001_01_01_2024_" + "स" * 30 + "_0001.pdf"


def test_single_oversized_segment_is_cut_on_a_character_boundary() -> None:
    stem = fit_stem("म" * 200, 100)

    assert len(stem.encode("utf-8")) <= 100
    assert stem == "म" * 33


def test_byte_cap_holds_for_default_configuration() -> None:
    cells = fir_cells(1, station="ठाणे " * 200, district="x" * 300, description="y")

    name = build_filename(cells)

    assert len(name.encode("utf-8")) <= config.FILENAME_MAX_BYTES


def test_collisions_get_smallest_free_counter(tmp_path: Path) -> None:
    (tmp_path / "base.pdf").write_bytes(b"1")
    (tmp_path / "base(1).pdf").write_bytes(b"2")
    (tmp_path / "base(3).pdf").write_bytes(b"3")

    assert resolve_collision(tmp_path, "base.pdf") == tmp_path / "base(2).pdf"
    assert resolve_collision(tmp_path, "other.pdf") == tmp_path / "other.pdf"


def test_source_file_does_not_collide_with_itself(tmp_path: Path) -> None:
    existing = tmp_path / "base.pdf"
    existing.write_bytes(b"1")

    assert resolve_collision(tmp_path, "base.pdf", source=existing) == existing


def test_collision_suffix_respects_byte_cap(tmp_path: Path) -> None:
    name = "a" * 36 + ".pdf"
    (tmp_path / name).write_bytes(b"1")

    resolved = resolve_collision(tmp_path, name, max_bytes=40)

    assert resolved.name == "a" * 33 + "(1).pdf"
    assert len(resolved.name.encode("utf-8")) <= 40


def test_finalize_download_renames_rows_with_identical_names(tmp_path: Path) -> None:
    row = ExtractedRow(tuple(fir_cells(5, reference="")), "dl_5")
    names = []
    for index in range(3):
        downloaded = f"download_{index}.pdf"
        (tmp_path / downloaded).write_bytes(b"%PDF")
        names.append(finalize_download(tmp_path, downloaded, row).name)

    base = build_filename(row.cells)
    stem = base[: -len(".pdf")]
    assert names == [base, f"{stem}(1).pdf", f"{stem}(2).pdf"]
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(names)
