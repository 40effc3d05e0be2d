import pytest

from queues import waits


class TestEstimateWait:
    @pytest.mark.parametrize(
        "count, expected",
        [(0, "ready"), (1, "10-20 min"), (2, "10-20 min"), (3, "20-35 min"),
         (4, "20-35 min"), (5, "35-50 min"), (40, "35-50 min"), (-1, "ready")],
    )
    def test_default_bands(self, count, expected):
        assert waits.estimate_wait(count, waits.DEFAULT_WAIT_BANDS) == expected

    def test_never_gets_shorter_with_more_people(self):
        labels = [label for _, label in waits.DEFAULT_WAIT_BANDS]
        positions = [labels.index(waits.estimate_wait(n)) for n in range(30)]
        assert positions == sorted(positions)

    def test_bands_from_settings(self, settings):
        settings.CLINICQUEUE_WAIT_BANDS = ((0, "now"), (None, "later"))
        assert waits.estimate_wait(0) == "now"
        assert waits.estimate_wait(1) == "later"

    def test_bands_must_increase(self):
        with pytest.raises(ValueError):
            waits.estimate_wait(1, ((3, "a"), (1, "b"), (None, "c")))

    def test_last_band_must_be_open_ended(self):
        with pytest.raises(ValueError):
            waits.estimate_wait(1, ((0, "a"), (5, "b")))


def test_people_ahead():
    assert waits.people_ahead(5, 0) == 5
    assert waits.people_ahead(5, 3) == 2
    assert waits.people_ahead(3, 5) == 0
