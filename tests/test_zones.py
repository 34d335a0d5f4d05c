"""Tests for pressure-zone detection."""

from __future__ import annotations

from conftest import make_entry

from depth_viewer.engine.zones import bucket_of, detect_all, detect_pressure_zones, pressure_score
from depth_viewer.types import ZoneType


class TestBucketOf:
    def test_rounds_half_up(self):
        assert bucket_of(100.5) == 101
        assert bucket_of(100.49) == 100
        assert bucket_of(99.5) == 100

    def test_negative_half_rounds_towards_positive(self):
        assert bucket_of(-2.5) == -2
        assert bucket_of(-2.51) == -3


class TestDetectPressureZones:
    def test_empty_input(self):
        zones, max_quantity = detect_pressure_zones([], threshold=1.0)
        assert zones == []
        assert max_quantity == 0.0

    def test_single_bucket_zone(self):
        zones, max_quantity = detect_pressure_zones([make_entry(99.0, 8.0, "okx")], threshold=1.6)

        assert max_quantity == 8.0
        assert len(zones) == 1
        zone = zones[0]
        assert (zone.min_price, zone.max_price) == (99.0, 99.0)
        assert zone.total_volume == 8.0
        assert zone.pressure_score == 8.0

    def test_entries_in_same_bucket_are_summed(self):
        entries = [make_entry(100.2, 1.0), make_entry(99.8, 1.0), make_entry(100.4, 1.0)]
        zones, _ = detect_pressure_zones(entries, threshold=3.0)

        assert len(zones) == 1
        assert zones[0].total_volume == 3.0
        assert len(zones[0].entries) == 3

    def test_below_threshold_produces_no_zone(self):
        entries = [make_entry(100.0, 1.0), make_entry(101.0, 1.0)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)
        assert zones == []

    def test_zone_grows_over_neighbours_at_half_threshold(self):
        entries = [
            make_entry(99.0, 3.0),    # >= 0.5 * 5
            make_entry(100.0, 10.0),  # seed
            make_entry(101.0, 2.5),   # exactly half threshold
        ]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        assert len(zones) == 1
        zone = zones[0]
        assert (zone.min_price, zone.max_price) == (99.0, 101.0)
        assert zone.total_volume == 15.5
        assert zone.pressure_score == 15.5 * 3

    def test_gap_stops_growth(self):
        entries = [make_entry(100.0, 10.0), make_entry(102.0, 10.0)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        ranges = sorted((z.min_price, z.max_price) for z in zones)
        assert ranges == [(100.0, 100.0), (102.0, 102.0)]

    def test_weak_neighbour_stops_growth(self):
        entries = [make_entry(100.0, 10.0), make_entry(101.0, 1.0), make_entry(102.0, 8.0)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        ranges = sorted((z.min_price, z.max_price) for z in zones)
        assert ranges == [(100.0, 100.0), (102.0, 102.0)]
        absorbed = {e.price for z in zones for e in z.entries}
        assert 101.0 not in absorbed

    def test_growth_limited_to_scan_radius_and_claims_buckets(self):
        entries = [make_entry(float(p), 10.0) for p in range(100, 108)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        assert len(zones) == 2
        first, second = zones
        assert (first.min_price, first.max_price) == (100.0, 105.0)
        assert first.total_volume == 60.0
        assert first.pressure_score == 360.0
        # 105 is claimed, so the second zone cannot reach below 106
        assert (second.min_price, second.max_price) == (106.0, 107.0)
        assert second.pressure_score == 40.0

    def test_custom_radius(self):
        entries = [make_entry(float(p), 10.0) for p in range(100, 104)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0, scan_radius=1)

        ranges = [(z.min_price, z.max_price) for z in zones]
        assert sorted(ranges) == [(100.0, 101.0), (102.0, 103.0)]

    def test_every_bucket_counted_once(self):
        entries = [make_entry(float(p), float(p % 7 + 1)) for p in range(90, 130)]
        zones, _ = detect_pressure_zones(entries, threshold=4.0)

        seen = [id(e) for z in zones for e in z.entries]
        assert len(seen) == len(set(seen))

    def test_score_and_volume_agree_with_entries(self):
        entries = [make_entry(90 + (i * 37 % 41) * 0.7, 0.5 + (i * 13 % 9)) for i in range(200)]
        zones, _ = detect_pressure_zones(entries, threshold=6.0)

        assert zones
        for zone in zones:
            assert zone.min_price <= zone.max_price
            assert zone.total_volume == sum(e.quantity for e in zone.entries)
            assert zone.pressure_score == zone.total_volume * (zone.max_price - zone.min_price + 1)

    def test_sorted_by_score_descending(self):
        entries = [
            make_entry(100.0, 6.0),
            make_entry(110.0, 20.0),
            make_entry(120.0, 9.0),
        ]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        scores = [z.pressure_score for z in zones]
        assert scores == sorted(scores, reverse=True)
        assert zones[0].min_price == 110.0

    def test_zone_type_uses_mean_of_all_entries(self):
        entries = [make_entry(100.0, 10.0), make_entry(200.0, 10.0)]
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        by_price = {z.min_price: z for z in zones}
        assert by_price[100.0].type is ZoneType.BID
        assert by_price[200.0].type is ZoneType.ASK

    def test_seed_entries_come_first(self):
        entries = [make_entry(99.0, 3.0), make_entry(101.0, 3.0), make_entry(100.0, 10.0)]
        # 99 is visited first but cannot seed; 100 seeds and absorbs both sides
        zones, _ = detect_pressure_zones(entries, threshold=5.0)

        assert len(zones) == 1
        assert zones[0].entries[0].price == 100.0
        assert [e.price for e in zones[0].entries] == [100.0, 99.0, 101.0]

    def test_zero_threshold_seeds_every_bucket(self):
        entries = [make_entry(100.0, 1.0), make_entry(110.0, 1.0), make_entry(120.0, 1.0)]
        zones, _ = detect_pressure_zones(entries, threshold=0.0)
        assert len(zones) == 3


class TestDetectAll:
    def test_zones_from_each_venue_are_kept_apart(self):
        groups = {
            "binance": [make_entry(100.0, 5.0), make_entry(101.0, 3.0)],
            "okx": [make_entry(100.0, 8.0, "okx")],
        }
        zones = detect_all(groups, threshold=1.6)

        assert len(zones) == 2
        venues = [{e.venue for e in z.entries} for z in zones]
        assert {"binance"} in venues
        assert {"okx"} in venues

    def test_merged_zones_sorted_by_score(self):
        groups = {
            "okx": [make_entry(99.0, 8.0, "okx")],
            "binance": [make_entry(100.0, 5.0), make_entry(101.0, 3.0)],
        }
        zones = detect_all(groups, threshold=1.6)

        assert [z.pressure_score for z in zones] == [16.0, 8.0]

    def test_empty_groups_skipped(self):
        assert detect_all({"binance": []}, threshold=1.0) == ()


def test_pressure_score_formula():
    assert pressure_score(8.0, 99.0, 99.0) == 8.0
    assert pressure_score(10.0, 100.0, 104.0) == 50.0
