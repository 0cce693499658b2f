"""Tests for plot extraction from submission payloads."""

import json
from pathlib import Path

from plotguard.config import ExtractionConfig, load_extraction_config
from plotguard.core.entities import Submission
from plotguard.core.plot_extractor import PlotExtractor
from plot_builders import make_submission, odk_square

SHAPE_A = odk_square(38.0, 9.0)
SHAPE_B = odk_square(39.0, 10.0)


def test_extracts_non_draft_plot_with_defaults() -> None:
    """Default mapping should read the grouped polygon field and name parts."""
    submission = make_submission(
        payload={
            "boundary_mapping/Open_Area_GeoMapping": SHAPE_A,
            "First_Name": "Abebe",
            "Father_s_Name": "Kebede",
            "Grandfather_s_Name": "Tesfaye",
            "woreda": "Adama",
            "kebele": "Kebele 01",
        }
    )

    plot = PlotExtractor().extract(submission)

    assert plot is not None
    assert not plot.is_draft
    assert plot.submission_id == submission.id
    assert plot.instance_name == "uuid:inst-1"
    assert plot.display_name == "Abebe Kebede Tesfaye"
    assert plot.region == "Adama"
    assert plot.sub_region == "Kebele 01"
    assert plot.form_id == "aForm1"
    assert plot.bounding_box.min_lon == 38.0


def test_polygon_field_priority_first_non_blank_wins() -> None:
    """An empty high-priority field should fall through to the next one."""
    submission = make_submission(
        payload={
            "boundary_mapping/Open_Area_GeoMapping": "   ",
            "Open_Area_GeoMapping": SHAPE_A,
            "manual_boundary": SHAPE_B,
        }
    )

    plot = PlotExtractor().extract(submission)

    assert plot is not None
    assert plot.bounding_box.min_lon == 38.0


def test_non_string_polygon_field_falls_through() -> None:
    submission = make_submission(
        payload={"Open_Area_GeoMapping": {"nested": SHAPE_A}, "manual_boundary": SHAPE_B}
    )

    plot = PlotExtractor().extract(submission)

    assert plot is not None
    assert plot.bounding_box.min_lon == 39.0


def test_name_skips_blank_parts_and_defaults_to_unknown() -> None:
    extractor = PlotExtractor()
    partial = make_submission(
        payload={"Open_Area_GeoMapping": SHAPE_A, "First_Name": " Abebe ", "Father_s_Name": ""}
    )
    nameless = make_submission(payload={"Open_Area_GeoMapping": SHAPE_A})

    assert extractor.extract(partial).display_name == "Abebe"
    assert extractor.extract(nameless).display_name == "Unknown"


def test_missing_region_fields_become_empty_strings() -> None:
    plot = PlotExtractor().extract(make_submission(payload={"Open_Area_GeoMapping": SHAPE_A}))

    assert plot.region == ""
    assert plot.sub_region == ""


def test_instance_name_falls_back_to_submission_id() -> None:
    submission = make_submission(
        submission_id="sub-77", payload={"Open_Area_GeoMapping": SHAPE_A}, instance_name=None
    )

    plot = PlotExtractor().extract(submission)

    assert plot.instance_name == "sub-77"


def test_returns_none_without_polygon_or_with_bad_polygon() -> None:
    extractor = PlotExtractor()

    assert extractor.extract(make_submission(payload={"First_Name": "Abebe"})) is None
    assert extractor.extract(make_submission(payload={"Open_Area_GeoMapping": "garbage"})) is None
    two_points = "9.0 38.0 0 0; 9.001 38.0 0 0"
    assert extractor.extract(make_submission(payload={"Open_Area_GeoMapping": two_points})) is None


def test_returns_none_for_non_object_payload() -> None:
    submission = Submission(
        id="sub-1",
        form_id="aForm1",
        external_id="1",
        submitted_at=make_submission().submitted_at,
        raw_payload=None,
    )

    assert PlotExtractor().extract(submission) is None


def test_self_intersecting_outline_is_still_extracted() -> None:
    bowtie = "0 0 0 0; 0 1 0 0; 1 0 0 0; 1 1 0 0"

    plot = PlotExtractor().extract(make_submission(payload={"Open_Area_GeoMapping": bowtie}))

    assert plot is not None
    assert not plot.polygon.is_valid


def test_wkt_polygon_field_is_accepted() -> None:
    wkt = "POLYGON ((38 9, 38.001 9, 38.001 9.001, 38 9.001, 38 9))"

    plot = PlotExtractor().extract(make_submission(payload={"manual_boundary": wkt}))

    assert plot is not None
    assert plot.bounding_box.max_lat == 9.001


def test_repeated_extraction_gives_equal_content_with_distinct_ids() -> None:
    """Extraction is deterministic apart from generated identity."""
    extractor = PlotExtractor()
    submission = make_submission(payload={"Open_Area_GeoMapping": SHAPE_A, "First_Name": "A"})

    first = extractor.extract(submission)
    second = extractor.extract(submission)

    assert first.id != second.id
    assert first.polygon.equals(second.polygon)
    assert first.display_name == second.display_name
    assert first.submission_id == second.submission_id


def test_custom_config_changes_fields(tmp_path: Path) -> None:
    """A config file should replace polygon, name and region fields."""
    config_path = tmp_path / "plot_extraction_config.json"
    config_path.write_text(
        json.dumps(
            {
                "polygonFields": ["parcel/outline"],
                "plotNameFields": ["owner"],
                "regionField": "district",
                "subRegionField": "village",
            }
        ),
        encoding="utf-8",
    )
    extractor = PlotExtractor(load_extraction_config(config_path))
    submission = make_submission(
        payload={
            "parcel/outline": SHAPE_B,
            "Open_Area_GeoMapping": SHAPE_A,
            "owner": "Hanna",
            "district": "Bishoftu",
            "village": "V2",
        }
    )

    plot = extractor.extract(submission)

    assert plot.bounding_box.min_lon == 39.0
    assert plot.display_name == "Hanna"
    assert (plot.region, plot.sub_region) == ("Bishoftu", "V2")


def test_partial_config_keeps_remaining_defaults() -> None:
    config = ExtractionConfig.from_dict({"regionField": "district"})

    assert config.region_field == "district"
    assert config.polygon_fields == ExtractionConfig().polygon_fields
