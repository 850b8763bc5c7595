from board.collision import Rect, closest_center, closest_corners


def test_rect_geometry():
    r = Rect(10, 20, 30, 40)
    assert (r.right, r.bottom) == (40, 60)
    assert r.center == (25, 40)
    assert r.corners[3] == (40, 60)


def test_closest_corners_ranks_by_summed_corner_distance():
    active = Rect(0, 0, 10, 10)
    droppables = {
        "far": Rect(100, 100, 10, 10),
        "near": Rect(2, 0, 10, 10),
        "exact": Rect(0, 0, 10, 10),
    }
    assert closest_corners(active, droppables) == ["exact", "near", "far"]


def test_ties_keep_registration_order():
    active = Rect(50, 0, 10, 10)
    droppables = {"left": Rect(40, 0, 10, 10), "right": Rect(60, 0, 10, 10)}
    assert closest_corners(active, droppables) == ["left", "right"]
    assert closest_center(active, droppables) == ["left", "right"]


def test_corners_prefer_matching_size_over_center():
    active = Rect(0, 0, 100, 20)
    droppables = {
        # same center, very different shape
        "bin": Rect(-200, -200, 500, 420),
        "card": Rect(0, 30, 100, 20),
    }
    assert closest_center(active, droppables)[0] == "bin"
    assert closest_corners(active, droppables)[0] == "card"


def test_no_droppables():
    assert closest_corners(Rect(0, 0, 1, 1), {}) == []
