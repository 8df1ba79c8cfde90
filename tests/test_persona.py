import unittest

import pandas as pd

from qda_package.persona import Persona, PERSONA_ORDER, classify_persona, classify_personas
from qda_package.pipeline import perform_quantitative_analysis


def build_cohort():
    """Twenty users covering every persona rule."""
    users = []
    for i in range(1, 21):
        user = {
            'totalSubscriptions': 0.0,
            'totalDeposits': 0.0,
            'totalCopies': 0.0,
            'regularPDPViews': 0.0,
            'premiumPDPViews': 0.0,
            'regularCreatorProfileViews': 0.0,
            'premiumCreatorProfileViews': 0.0,
            'subscribedWithin7Days': 0.0,
        }
        if i <= 5:
            user['totalSubscriptions'] = float(i)
            user['totalDeposits'] = 500.0 * (i % 2)
        elif i <= 12:
            user['totalDeposits'] = 100.0 * i
            user['totalCopies'] = float(i % 3)
        elif i <= 16:
            user['regularPDPViews' if i % 2 else 'premiumCreatorProfileViews'] = 2.0
        elif i <= 19:
            pass
        else:
            user['totalCopies'] = 1.0
        users.append(user)
    return pd.DataFrame(users)


class ClassifyPersonaTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.records = build_cohort()
        cls.personas = classify_personas(cls.records)

    def test_subscribers_are_premium(self):
        self.assertTrue((self.personas.iloc[0:5] == 'premium').all())

    def test_depositors_without_subscription_are_core(self):
        self.assertTrue((self.personas.iloc[5:12] == 'core').all())

    def test_viewers_without_funnel_are_activation_targets(self):
        self.assertTrue((self.personas.iloc[12:16] == 'activationTargets').all())

    def test_inactive_users_are_non_activated(self):
        self.assertTrue((self.personas.iloc[16:19] == 'nonActivated').all())

    def test_copy_without_deposit_is_unclassified(self):
        self.assertEqual(self.personas.iloc[19], 'unclassified')

    def test_subscribed_within_7_days_is_premium(self):
        self.assertEqual(classify_persona({'subscribedWithin7Days': 1, 'totalDeposits': 50}), Persona.PREMIUM)

    def test_deposit_count_without_amount_is_core(self):
        user = {'totalDepositCount': 3, 'totalDeposits': 0, 'totalSubscriptions': 0, 'totalCopies': 0}
        self.assertEqual(classify_persona(user), Persona.CORE)
        records = pd.DataFrame([user, dict(user, totalDepositCount=0, regularPDPViews=2)], dtype=float)
        self.assertEqual(list(classify_personas(records)), ['core', 'activationTargets'])

    def test_deposit_count_agrees_with_summary(self):
        rows = [{'Total Deposit Count': '3', 'Total Deposits': '', 'Total Subscriptions': '0', 'Total Copies': '0'}]
        results = perform_quantitative_analysis(rows)
        self.assertEqual(results.summary_stats['depositConversion'], 1.0)
        self.assertEqual(list(results.personas), ['core'])

    def test_missing_fields_count_as_zero(self):
        self.assertEqual(classify_persona({}), Persona.NON_ACTIVATED)

    def test_every_user_gets_exactly_one_known_persona(self):
        known = {p.value for p in PERSONA_ORDER}
        self.assertEqual(len(self.personas), len(self.records))
        self.assertTrue(set(self.personas).issubset(known))

    def test_vectorised_matches_scalar(self):
        for index, row in self.records.iterrows():
            self.assertEqual(self.personas[index], classify_persona(row).value)

    def test_deterministic(self):
        pd.testing.assert_series_equal(self.personas, classify_personas(self.records))

    def test_missing_columns(self):
        personas = classify_personas(pd.DataFrame({'totalDeposits': [0.0, 10.0]}))
        self.assertEqual(list(personas), ['nonActivated', 'core'])


if __name__ == "__main__":
    unittest.main()
