from __future__ import annotations

import numpy as np
import pytest

from droplet_tracker.core.errors import InvalidInput
from droplet_tracker.core.tracking.worker import DropletTrackingWorker
from droplet_tracker.core.types import Detection
from tests.helpers.synthetic import ScriptedDetector, blank_frame, make_detection


def _params() -> dict:
    return {
        "DROPLET_AREA_THRESHOLD": 1000,
        "DROPLET_FRAME_GAP": 3,
        "COST_OF_NON_ASSIGNMENT": 20.0,
    }


def _droplet_script(n_frames: int, present: set) -> list:
    return [[make_detection(160, 120, w=60, h=40)] if i in present else [] for i in range(1, n_frames + 1)]


def _run(script, params=None):
    worker = DropletTrackingWorker(params or _params(), detector=ScriptedDetector(script))
    frames = [blank_frame() for _ in script]
    droplets = worker.run(frames)
    return worker, droplets


def test_intermittent_droplet_gets_two_ids() -> None:
    worker, droplets = _run(_droplet_script(40, {5, 6, 40}))

    assert [d.frame_id for d in droplets] == [5, 6, 40]
    assert [d.id for d in droplets] == [1, 1, 2]
    assert worker.frame_count == 40
    # first track was pruned, the droplet at frame 40 opened a new one
    assert [t.id for t in worker.tracks] == [2]


def test_replay_is_deterministic() -> None:
    rng = np.random.default_rng(5)
    script = []
    for t in range(30):
        dets = [make_detection(80 + 2 * t + rng.normal(0, 1.0), 100, w=50, h=40)]
        if t % 4:
            dets.append(make_detection(250, 60 + t, w=30, h=30))
        script.append(dets)

    worker_a, droplets_a = _run(script)
    worker_b, droplets_b = _run(script)

    assert droplets_a == droplets_b
    assert [t.id for t in worker_a.tracks] == [t.id for t in worker_b.tracks]
    for ta, tb in zip(worker_a.tracks, worker_b.tracks):
        np.testing.assert_allclose(ta.filter.X, tb.filter.X)
        assert ta.age == tb.age


def test_new_track_detections_can_be_excluded() -> None:
    script = _droplet_script(3, {1, 2, 3})

    _, default_droplets = _run(script)
    params = dict(_params(), DROPLET_INCLUDE_NEW_TRACKS=False)
    _, matched_only = _run(script, params)

    assert [d.frame_id for d in default_droplets] == [1, 2, 3]
    assert [d.frame_id for d in matched_only] == [2, 3]
    assert [d.id for d in matched_only] == [1, 1]


def test_process_detections_returns_outcome() -> None:
    worker = DropletTrackingWorker(_params())
    frame = blank_frame()

    first = worker.process_detections(frame, [make_detection(100, 100)])
    second = worker.process_detections(frame, [make_detection(101, 100)])

    assert first.new_tracks == [1]
    assert second.matches == [(1, 0)]
    assert second.matched_detections == [0]
    assert worker.frame_count == 2


def test_bad_frame_propagates_by_default() -> None:
    worker = DropletTrackingWorker(_params())
    bad = Detection(area=float("nan"), centroid=(10.0, 10.0), bbox=(5.0, 5.0, 10.0, 10.0))

    with pytest.raises(InvalidInput):
        worker.process_detections(blank_frame(), [bad])


def test_bad_frame_is_skipped_when_requested() -> None:
    bad = Detection(area=500.0, centroid=(10.0, 10.0), bbox=(300.0, 5.0, 40.0, 10.0))
    script = [[make_detection(100, 100)], [bad], [make_detection(101, 100)]]

    worker = DropletTrackingWorker(_params(), detector=ScriptedDetector(script), skip_bad_frames=True)
    worker.run([blank_frame() for _ in script])

    assert worker.skipped_frames == [2]
    assert worker.frame_count == 3
    track = worker.tracks[0]
    assert track.id == 1
    assert track.age == 2
    assert track.total_visible_count == 2


def test_skip_bad_frames_from_params() -> None:
    worker = DropletTrackingWorker(dict(_params(), SKIP_BAD_FRAMES=True))
    assert worker.skip_bad_frames is True
    assert worker.get_current_params()["SKIP_BAD_FRAMES"] is True


def test_stop_takes_effect_between_frames() -> None:
    worker = DropletTrackingWorker(_params(), detector=ScriptedDetector([]))

    def frames():
        for i in range(10):
            if i == 3:
                worker.stop()
            yield blank_frame()

    worker.run(frames())

    assert worker.frame_count == 3


def test_blob_detector_feeds_the_tracker() -> None:
    params = dict(_params(), DROPLET_AREA_THRESHOLD=3000, BACKGROUND_TRAINING_FRAMES=20)
    worker = DropletTrackingWorker(params)

    frames = [blank_frame() for _ in range(25)]
    for i in range(10):
        frame = blank_frame()
        x = 60 + 5 * i
        frame[80:140, x : x + 80] = 255
        frames.append(frame)

    droplets = worker.run(frames)

    assert worker.frame_count == 35
    assert len(droplets) > 0
    assert {d.id for d in droplets} == {1}
    assert all(d.frame_id > 25 for d in droplets)
    assert all(d.area >= 3000 for d in droplets)
