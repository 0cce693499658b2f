"""Tests for the region and bounding-box pre-filtered overlap check."""

from shapely.geometry import box

import plotguard.core.overlap_checker as overlap_module
from plotguard.core.overlap_checker import OverlapChecker
from plotguard.utils.geometry_codec import BoundingBox
from plot_builders import make_plot, odk_square, square


class _FakePlotStore:
    """In-memory candidate source applying the same region and bbox rules."""

    def __init__(self, plots) -> None:
        self.plots = list(plots)
        self.queries: list[tuple[str, BoundingBox, str | None]] = []

    def find_overlap_candidates(self, region, box, exclude_id=None):
        self.queries.append((region, box, exclude_id))
        return [
            plot
            for plot in self.plots
            if plot.region == region
            and plot.bounding_box.intersects(box)
            and plot.id != exclude_id
        ]


def test_overlapping_plot_in_same_region_is_reported() -> None:
    existing = make_plot(lon=38.0, lat=9.0, size=0.01)
    checker = OverlapChecker(_FakePlotStore([existing]))

    overlaps = checker.find_overlaps(square(38.005, 9.005, 0.01), region="Adama")

    assert [plot.id for plot in overlaps] == [existing.id]


def test_identical_polygon_in_other_region_is_never_reported() -> None:
    """Region partitioning: cross-region plots are never compared."""
    other = make_plot(lon=38.0, lat=9.0, size=0.01, region="Bishoftu")
    store = _FakePlotStore([other])
    checker = OverlapChecker(store)

    report = checker.check(other.polygon, region="Adama")

    assert not report.has_overlap
    assert store.queries[0][0] == "Adama"


def test_disjoint_boxes_skip_precise_test(monkeypatch) -> None:
    """Plots whose boxes do not intersect must not reach the precise test."""
    calls: list[int] = []
    real_mask = overlap_module.intersecting_mask

    def _counting_mask(candidate, plots):
        calls.append(len(plots))
        return real_mask(candidate, plots)

    monkeypatch.setattr(overlap_module, "intersecting_mask", _counting_mask)
    far_plots = [make_plot(lon=40.0 + i, lat=12.0) for i in range(5)]
    checker = OverlapChecker(_FakePlotStore(far_plots))

    report = checker.check(square(38.0, 9.0), region="Adama")

    assert report.overlaps == []
    assert report.bbox_candidates == 0
    assert calls == []


def test_precise_test_only_sees_bbox_survivors(monkeypatch) -> None:
    seen: list[list[str]] = []
    real_mask = overlap_module.intersecting_mask

    def _recording_mask(candidate, plots):
        seen.append([plot.id for plot in plots])
        return real_mask(candidate, plots)

    monkeypatch.setattr(overlap_module, "intersecting_mask", _recording_mask)
    near = make_plot(lon=38.0, lat=9.0, size=0.01)
    far = make_plot(lon=45.0, lat=9.0, size=0.01)
    checker = OverlapChecker(_FakePlotStore([near, far]))

    checker.check(square(38.002, 9.002, 0.001), region="Adama")

    assert seen == [[near.id]]


def test_bbox_overlap_without_shape_overlap_is_rejected_precisely() -> None:
    """An L-shaped neighbour shares the box but not the area."""
    l_shape = make_plot()
    l_shape.polygon = box(38.0, 9.0, 38.01, 9.001).union(box(38.0, 9.0, 38.001, 9.01))
    checker = OverlapChecker(_FakePlotStore([l_shape]))

    report = checker.check(square(38.005, 9.005, 0.002), region="Adama")

    assert report.bbox_candidates == 1
    assert report.overlaps == []


def test_exclude_id_skips_plot_being_revalidated() -> None:
    existing = make_plot(lon=38.0, lat=9.0, size=0.01)
    checker = OverlapChecker(_FakePlotStore([existing]))

    overlaps = checker.find_overlaps(existing.polygon, region="Adama", exclude_id=existing.id)

    assert overlaps == []


def test_result_is_subset_of_same_region_plots() -> None:
    plots = [
        make_plot(lon=38.0 + 0.0005 * i, lat=9.0, size=0.001, region=region)
        for i, region in enumerate(["Adama", "Bishoftu", "Adama", "Bishoftu"])
    ]
    checker = OverlapChecker(_FakePlotStore(plots))

    overlaps = checker.find_overlaps(square(38.0, 9.0, 0.003), region="Adama")

    adama_ids = {plot.id for plot in plots if plot.region == "Adama"}
    assert {plot.id for plot in overlaps} == adama_ids


def test_text_candidate_is_parsed() -> None:
    existing = make_plot(lon=38.0, lat=9.0, size=0.01)
    checker = OverlapChecker(_FakePlotStore([existing]))

    overlaps = checker.find_overlaps(odk_square(38.005, 9.005), region="Adama")

    assert len(overlaps) == 1


def test_store_backed_check(stores) -> None:
    """The SQL bbox query and the precise test agree end to end."""
    touching = make_plot(lon=38.001, lat=9.0, size=0.001)
    overlapping = make_plot(lon=38.0005, lat=9.0005, size=0.001, created_offset_s=1)
    stores.plots.upsert_many([touching, overlapping])
    checker = OverlapChecker(stores.plots)

    report = checker.check(box(38.0, 9.0, 38.001, 9.001), region="Adama")

    assert report.bbox_candidates == 2
    assert report.overlapping_ids == [touching.id, overlapping.id]
