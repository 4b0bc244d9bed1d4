from focuswatch.core.analytics.heatmap import HeatmapConfig, HeatmapTracker


def test_point_alive_just_before_window():
    hm = HeatmapTracker(HeatmapConfig(decay_ms=20000))
    hm.add((10, 10), now=100.0)
    live = hm.points(now=100.0 + 19.999)
    assert len(live) == 1
    _, alpha = live[0]
    assert alpha > 0


def test_point_removed_after_window():
    hm = HeatmapTracker(HeatmapConfig(decay_ms=20000))
    hm.add((10, 10), now=100.0)
    assert hm.points(now=120.001) == []
    assert len(hm) == 0


def test_alpha_fades_linearly():
    hm = HeatmapTracker(HeatmapConfig(decay_ms=20000))
    hm.add((10, 10), now=0.0)
    [(_, alpha0)] = hm.points(now=0.0)
    [(_, alpha_half)] = hm.points(now=10.0)
    assert alpha0 == 1.0
    assert abs(alpha_half - 0.5) < 1e-9


def test_grid_weights_by_alpha():
    hm = HeatmapTracker(HeatmapConfig(decay_ms=20000, grid_size=(2, 2)), frame_size=(100, 100))
    hm.add((10, 10), now=0.0)
    hm.add((75, 75), now=0.0)
    hm.add((80, 80), now=10.0)
    grid = hm.grid(now=10.0)
    assert abs(grid[0, 0] - 0.5) < 1e-9
    assert abs(grid[1, 1] - 1.5) < 1e-9

    summary = hm.summary(now=10.0)
    assert summary["max_cell"] == [1, 1]
    assert summary["grid_size"] == [2, 2]
    assert len(summary["points"]) == 3


def test_grid_is_empty_without_frame_size():
    hm = HeatmapTracker(HeatmapConfig(grid_size=(4, 3)))
    hm.add((10, 10), now=0.0)
    grid = hm.grid(now=0.0)
    assert grid.shape == (3, 4)
    assert grid.sum() == 0
    assert hm.summary(now=0.0)["max_cell"] is None


def test_clear():
    hm = HeatmapTracker()
    hm.add((1, 1), now=0.0)
    hm.clear()
    assert hm.points(now=0.0) == []
