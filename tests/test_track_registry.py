from __future__ import annotations

import numpy as np
import pytest

from droplet_tracker.core.errors import AssignmentFailure, InvalidInput
from droplet_tracker.core.tracking.registry import TrackRegistry, _predicted_bbox
from droplet_tracker.core.types import Detection
from tests.helpers.synthetic import make_detection


def _params() -> dict:
    return {
        "COST_OF_NON_ASSIGNMENT": 20.0,
        "TRACK_AGE_THRESHOLD": 8,
        "TRACK_VISIBILITY_THRESHOLD": 0.6,
        "TRACK_INVISIBLE_FOR_TOO_LONG": 20,
    }


def _assert_track_invariants(registry: TrackRegistry) -> None:
    for tid, track in registry.tracks.items():
        assert tid == track.id
        assert track.id < registry.next_id
        assert 1 <= track.total_visible_count <= track.age
        assert 0 <= track.consecutive_invisible_count <= track.age


def test_empty_step_on_empty_registry_is_noop() -> None:
    registry = TrackRegistry(_params())

    outcome = registry.step([])

    assert len(registry) == 0
    assert registry.next_id == 1
    assert outcome.matches == []
    assert outcome.new_tracks == []


def test_first_detections_create_tracks_with_sequential_ids() -> None:
    registry = TrackRegistry(_params())

    outcome = registry.step([make_detection(50, 50), make_detection(200, 150)])

    assert outcome.new_tracks == [1, 2]
    assert outcome.unmatched_detections == [0, 1]
    assert registry.next_id == 3
    for track in registry.get_tracks():
        assert track.age == 1
        assert track.total_visible_count == 1
        assert track.consecutive_invisible_count == 0


def test_slow_drift_keeps_a_single_track() -> None:
    registry = TrackRegistry(_params())

    for t in range(10):
        outcome = registry.step([make_detection(100 + t, 100)])
        _assert_track_invariants(registry)

    assert outcome.matches == [(1, 0)]
    assert [t.id for t in registry.get_tracks()] == [1]
    track = registry.tracks[1]
    assert track.age == 10
    assert track.total_visible_count == 10
    assert track.consecutive_invisible_count == 0


def test_two_separated_droplets_keep_their_identities() -> None:
    registry = TrackRegistry(_params())

    for t in range(10):
        registry.step([make_detection(50 + t, 50), make_detection(250 - t, 180)])

    assert sorted(registry.tracks) == [1, 2]
    assert registry.tracks[1].centroid[0] == pytest.approx(59, abs=1.0)
    assert registry.tracks[2].centroid[0] == pytest.approx(241, abs=1.0)
    assert all(t.total_visible_count == 10 for t in registry.get_tracks())


def test_matched_track_takes_detection_bbox() -> None:
    registry = TrackRegistry(_params())
    registry.step([make_detection(100, 100)])

    det = Detection(area=300.0, centroid=(102.0, 101.0), bbox=(90.0, 91.0, 25.0, 21.0))
    registry.step([det])

    assert registry.tracks[1].bbox == (90.0, 91.0, 25.0, 21.0)


def test_unmatched_track_bbox_follows_prediction() -> None:
    registry = TrackRegistry(_params())
    for t in range(8):
        registry.step([make_detection(100 + 2 * t, 100)])
    track = registry.tracks[1]
    w, h = track.bbox[2], track.bbox[3]

    outcome = registry.step([])

    assert outcome.unmatched_tracks == [1]
    assert track.consecutive_invisible_count == 1
    cx, cy = track.centroid
    assert track.bbox[0] == np.floor(np.floor(cx + 0.5) - w / 2.0 + 0.5)
    assert track.bbox[1] == np.floor(np.floor(cy + 0.5) - h / 2.0 + 0.5)
    assert (track.bbox[2], track.bbox[3]) == (w, h)


def test_predicted_bbox_rounds_halves_away_from_zero() -> None:
    # odd sizes put the corner on a half pixel
    assert _predicted_bbox((50.0, 50.0, 23.0, 21.0), (100.2, 100.2)) == (89.0, 90.0, 23.0, 21.0)
    assert _predicted_bbox((0.0, 0.0, 5.0, 5.0), (0.4, -0.6)) == (-3.0, -4.0, 5.0, 5.0)
    assert _predicted_bbox((0.0, 0.0, 4.0, 4.0), (10.5, 11.5)) == (9.0, 10.0, 4.0, 4.0)


def test_unmatched_odd_width_track_bbox() -> None:
    registry = TrackRegistry(_params())
    det = Detection(area=483.0, centroid=(100.0, 100.0), bbox=(89.0, 90.0, 23.0, 21.0))
    for _ in range(8):
        registry.step([det])

    registry.step([])

    assert registry.tracks[1].bbox == (89.0, 90.0, 23.0, 21.0)


def test_young_track_is_pruned_after_one_miss() -> None:
    registry = TrackRegistry(_params())
    registry.step([make_detection(60, 60)])

    outcome = registry.step([])

    # age 2, visibility 0.5 < 0.6
    assert outcome.pruned_tracks == [1]
    assert len(registry) == 0


def test_mature_track_is_pruned_on_twentieth_missed_frame() -> None:
    registry = TrackRegistry(_params())
    for _ in range(10):
        registry.step([make_detection(120, 80)])

    for missed in range(1, 20):
        outcome = registry.step([])
        assert outcome.pruned_tracks == []
        assert registry.tracks[1].consecutive_invisible_count == missed
        _assert_track_invariants(registry)

    outcome = registry.step([])
    assert outcome.pruned_tracks == [1]
    assert len(registry) == 0


def test_track_ids_are_never_reused() -> None:
    registry = TrackRegistry(_params())
    registry.step([make_detection(60, 60)])
    registry.step([])
    assert len(registry) == 0

    outcome = registry.step([make_detection(60, 60)])

    assert outcome.new_tracks == [2]
    assert registry.next_id == 3


def test_invalid_detection_leaves_state_unchanged() -> None:
    registry = TrackRegistry(_params())
    registry.step([make_detection(60, 60)])
    X_before = registry.tracks[1].filter.X.copy()
    bbox_before = registry.tracks[1].bbox

    bad = Detection(area=-1.0, centroid=(61.0, 60.0), bbox=(51.0, 50.0, 20.0, 20.0))
    with pytest.raises(InvalidInput):
        registry.step([make_detection(61, 60), bad])

    track = registry.tracks[1]
    np.testing.assert_allclose(track.filter.X, X_before)
    assert track.bbox == bbox_before
    assert track.age == 1
    assert registry.next_id == 2


def test_bbox_outside_frame_is_rejected_when_frame_size_given() -> None:
    registry = TrackRegistry(_params())
    det = Detection(area=400.0, centroid=(315.0, 100.0), bbox=(305.0, 90.0, 20.0, 20.0))

    registry.step([det])
    assert len(registry) == 1

    registry = TrackRegistry(_params())
    with pytest.raises(InvalidInput):
        registry.step([det], frame_size=(320, 240))
    assert len(registry) == 0


def test_assignment_failure_rolls_back_predictions(monkeypatch) -> None:
    registry = TrackRegistry(_params())
    for t in range(4):
        registry.step([make_detection(100 + 3 * t, 100)])
    track = registry.tracks[1]
    X_before, P_before = track.filter.get_state()
    bbox_before = track.bbox

    monkeypatch.setattr(
        registry.assigner,
        "compute_cost_matrix",
        lambda filters, centroids: np.full((len(filters), len(centroids)), np.nan),
    )
    with pytest.raises(AssignmentFailure):
        registry.step([make_detection(112, 100)])

    np.testing.assert_allclose(track.filter.X, X_before)
    np.testing.assert_allclose(track.filter.P, P_before)
    assert track.bbox == bbox_before
    assert track.age == 4


def test_invariants_hold_on_noisy_sequence() -> None:
    rng = np.random.default_rng(3)
    registry = TrackRegistry(_params())
    seen_ids = []

    for t in range(60):
        dets = []
        for base_x, base_y in [(40, 60), (160, 120), (260, 200)]:
            if rng.random() < 0.7:
                cx = base_x + t + rng.normal(0, 2.0)
                cy = base_y + rng.normal(0, 2.0)
                dets.append(make_detection(cx, cy))
        outcome = registry.step(dets)
        seen_ids.extend(outcome.new_tracks)
        _assert_track_invariants(registry)

    assert seen_ids == sorted(seen_ids)
    assert len(set(seen_ids)) == len(seen_ids)


@pytest.mark.parametrize(
    "det",
    [
        Detection(area="large", centroid=(10.0, 10.0), bbox=(5.0, 5.0, 10.0, 10.0)),
        Detection(area=100.0, centroid=(None, 10.0), bbox=(5.0, 5.0, 10.0, 10.0)),
        Detection(area=100.0, centroid=(10.0, 10.0), bbox=(5.0, "5", 10.0, 10.0)),
        Detection(area=100.0, centroid=10.0, bbox=(5.0, 5.0, 10.0, 10.0)),
    ],
)
def test_non_numeric_detection_fields_raise_invalid_input(det: Detection) -> None:
    registry = TrackRegistry(_params())

    with pytest.raises(InvalidInput):
        registry.step([det])
    assert len(registry) == 0
