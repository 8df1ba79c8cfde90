"""Tests for tipping point detection."""

import unittest

import numpy as np
import pandas as pd

from qda_package.tipping_point import (
    calculate_tipping_point,
    calculate_all_tipping_points,
    pre_group_for_tipping_points,
)


def make_records(buckets):
    """Records from (value, users, converters) triples for one predictor."""
    values, copies = [], []
    for value, users, converters in buckets:
        values.extend([value] * users)
        copies.extend([1.0] * converters + [0.0] * (users - converters))
    return pd.DataFrame({'timeToFirstCopy': values, 'totalCopies': copies}, dtype=float)


class CalculateTippingPointTests(unittest.TestCase):

    def test_largest_jump_above_minimum_rate(self):
        records = make_records([(2, 15, 1), (8, 15, 10)])
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 8)

    def test_small_bucket_is_ignored(self):
        # value 3 converts perfectly but has only 9 users
        records = make_records([(0, 20, 0), (3, 9, 9), (5, 20, 6)])
        result = calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies')
        self.assertEqual(result, 5)

    def test_minimum_rate_is_exclusive(self):
        records = make_records([(0, 10, 0), (1, 10, 1)])
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 'N/A')

    def test_no_increase(self):
        records = make_records([(0, 20, 10), (1, 20, 5), (2, 20, 2)])
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 'N/A')

    def test_single_eligible_bucket(self):
        records = make_records([(0, 50, 10), (4, 5, 5)])
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 'N/A')

    def test_values_are_floored(self):
        records = pd.DataFrame({
            'timeToFirstCopy': [0.2] * 12 + [2.3] * 6 + [2.9] * 6,
            'totalCopies': [0.0] * 12 + [1.0] * 6 + [0.0] * 6,
        })
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 2)

    def test_huge_values_are_clipped(self):
        records = make_records([(0, 12, 0), (1e20, 12, 12), (-1e20, 12, 0)])
        with self.assertLogs('qda_package.tipping_point', level='WARNING'):
            groups = pre_group_for_tipping_points(records, ['timeToFirstCopy'], ['totalCopies'])
        values = list(groups[('timeToFirstCopy', 'totalCopies')]['value'])
        self.assertEqual(values, [-2 ** 53, 0, 2 ** 53])
        with self.assertLogs('qda_package.tipping_point', level='WARNING'):
            result = calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies')
        self.assertEqual(result, 2 ** 53)

    def test_empty_records(self):
        records = make_records([])
        self.assertEqual(calculate_tipping_point(records, 'timeToFirstCopy', 'totalCopies'), 'N/A')


class AllTippingPointsTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        rng = np.random.default_rng(7)
        n = 400
        sessions = rng.integers(0, 8, size=n)
        cls.records = pd.DataFrame({
            'appSessions': sessions.astype(float),
            'paywallViews': rng.integers(0, 4, size=n).astype(float),
            'totalCopies': (rng.random(n) < sessions / 10).astype(float),
            'totalSubscriptions': (rng.random(n) < 0.2).astype(float) * 2,
        })
        cls.variables = ['appSessions', 'paywallViews', 'totalCopies']
        cls.outcomes = ['totalCopies', 'totalSubscriptions']
        cls.results = calculate_all_tipping_points(cls.records, cls.variables, cls.outcomes)

    def test_structure(self):
        self.assertEqual(list(self.results), self.outcomes)
        self.assertNotIn('totalCopies', self.results['totalCopies'])
        self.assertIn('totalCopies', self.results['totalSubscriptions'])

    def test_values_are_int_or_not_available(self):
        for by_variable in self.results.values():
            for value in by_variable.values():
                self.assertTrue(value == 'N/A' or isinstance(value, int), msg=repr(value))

    def test_single_pass_matches_per_pair(self):
        for outcome, by_variable in self.results.items():
            for variable, value in by_variable.items():
                self.assertEqual(
                    value,
                    calculate_tipping_point(self.records, variable, outcome),
                    msg=f"{variable} -> {outcome}"
                )

    def test_pre_grouped_counts(self):
        groups = pre_group_for_tipping_points(self.records, self.variables, self.outcomes)
        sessions = groups[('appSessions', 'totalCopies')]
        self.assertEqual(int(sessions['total'].sum()), len(self.records))
        self.assertEqual(int(sessions['converted'].sum()), int((self.records['totalCopies'] > 0).sum()))
        self.assertEqual(list(sessions['value']), sorted(sessions['value']))


if __name__ == "__main__":
    unittest.main()
