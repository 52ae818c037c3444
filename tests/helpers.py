# tests/helpers.py


class FixedCrashPoints:
    """Stands in for CrashPointGenerator, handing out the given crash points in order."""

    def __init__(self, points):
        self.points = list(points)
        self.drawn = []

    def generate_crash_point(self) -> float:
        point = self.points.pop(0)
        self.drawn.append(point)
        return point
