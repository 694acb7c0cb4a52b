import unittest

from app.services.increments import min_increment, min_next_bid


class BidIncrementTests(unittest.TestCase):
    def test_tier_boundaries_belong_to_upper_tier(self) -> None:
        cases = {
            0: 100,
            999: 100,
            1000: 200,
            2999: 200,
            3000: 500,
            5999: 500,
            6000: 1000,
            250000: 1000,
        }
        for current, expected in cases.items():
            with self.subTest(current=current):
                self.assertEqual(min_increment(current), expected)

    def test_min_next_bid(self) -> None:
        self.assertEqual(min_next_bid(0), 100)
        self.assertEqual(min_next_bid(900), 1000)
        self.assertEqual(min_next_bid(1000), 1200)
        self.assertEqual(min_next_bid(6000), 7000)
