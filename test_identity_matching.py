#!/usr/bin/env python3
"""
Test suite for duplicate detection and attendee correlation.

This test suite covers:
- Strict duplicate detection on (first name, last name, date of birth)
- Line item resolution by player id, stored index and attendee name
- Conflict reporting when index and name disagree
"""

import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from matching.identity_matcher import IdentityMatcher
from models.order import OrderLineItemReference
from models.player import PlayerRecord
from utils.name_utils import NameUtils


def make_record(first_name, last_name, dob='2016-04-01', gender='female', player_id=None):
    return PlayerRecord(first_name=first_name, last_name=last_name,
                        date_of_birth=date.fromisoformat(dob), gender=gender,
                        player_id=player_id or f"{first_name.lower()}-{last_name.lower()}")


def make_item(index=None, name=None, player_id=None, item_id=1):
    return OrderLineItemReference(item_id=item_id, order_id=100, event_name='Summer Camp',
                                  assigned_attendee_name=name, player_record_index=index,
                                  player_id=player_id)


class TestDuplicateDetection(unittest.TestCase):
    """Test cases for IdentityMatcher duplicate checks."""

    def setUp(self):
        self.matcher = IdentityMatcher()
        self.records = [make_record('Alice', 'Smith'), make_record('Bob', 'Jones', '2014-02-03', 'male')]

    def test_exact_duplicate(self):
        candidate = make_record('Alice', 'Smith')
        self.assertEqual(self.matcher.find_duplicate(candidate, self.records), 0)
        self.assertTrue(self.matcher.is_duplicate(candidate, self.records))

    def test_case_and_whitespace_are_ignored(self):
        candidate = make_record(' ALICE', 'smith  ')
        self.assertEqual(self.matcher.find_duplicate(candidate, self.records), 0)

    def test_different_birth_date_is_not_duplicate(self):
        candidate = make_record('Alice', 'Smith', '2016-04-02')
        self.assertIsNone(self.matcher.find_duplicate(candidate, self.records))

    def test_no_fuzzy_matching(self):
        for first_name in ('Alicia', 'Alice-Marie', 'Alce'):
            with self.subTest(first_name=first_name):
                self.assertFalse(self.matcher.is_duplicate(make_record(first_name, 'Smith'), self.records))

    def test_excluded_index_is_skipped(self):
        candidate = make_record('Alice', 'Smith')
        self.assertIsNone(self.matcher.find_duplicate(candidate, self.records, exclude_index=0))


class TestAttendeeCorrelation(unittest.TestCase):
    """Test cases for resolving line items to player records."""

    def setUp(self):
        self.history = MagicMock()
        self.matcher = IdentityMatcher(self.history)
        self.records = [
            make_record('Alice', 'Smith'),
            make_record('Bob', 'Jones', '2014-02-03', 'male'),
            make_record('Carla', 'Meier', '2018-10-10')
        ]

    def test_player_id_takes_precedence(self):
        item = make_item(index=0, name='Alice Smith', player_id='carla-meier')
        self.assertEqual(self.matcher.resolve(item, self.records), 2)
        self.history.record_conflict.assert_not_called()

    def test_missing_player_id_is_unattributed(self):
        """An item tied to a deleted record never drifts onto whoever now holds its index."""
        item = make_item(index=1, name='Bob Jones', player_id='deleted-player')
        self.assertIsNone(self.matcher.resolve(item, self.records))
        self.history.record_conflict.assert_not_called()

    def test_index_corroborated_by_name(self):
        item = make_item(index=1, name='bob  JONES')
        self.assertEqual(self.matcher.resolve(item, self.records), 1)
        self.history.record_conflict.assert_not_called()

    def test_index_without_name(self):
        self.assertEqual(self.matcher.resolve(make_item(index=2), self.records), 2)

    def test_stale_index_pointing_at_alice_named_bob_resolves_to_bob(self):
        """Index says Alice, name says Bob: the name wins and the conflict is reported."""
        item = make_item(index=0, name='Bob Jones')

        with self.assertLogs('matching.identity_matcher', level='WARNING') as logs:
            resolved = self.matcher.resolve(item, self.records, guardian_id=7)

        self.assertEqual(resolved, 1)
        self.assertIn('CORRELATION CONFLICT', logs.output[0])
        conflict = self.history.record_conflict.call_args[0][0]
        self.assertEqual(conflict.stored_index, 0)
        self.assertEqual(conflict.index_name, 'Alice Smith')
        self.assertEqual(conflict.resolved_index, 1)
        self.assertEqual(conflict.guardian_id, 7)

    def test_stale_index_pointing_at_bob_named_alice_resolves_to_alice(self):
        """The same tie-break in the other direction."""
        item = make_item(index=1, name='Alice Smith')

        resolved, conflict = self.matcher.resolve_with_conflict(item, self.records)

        self.assertEqual(resolved, 0)
        self.assertEqual(conflict.stored_index, 1)
        self.assertEqual(conflict.index_name, 'Bob Jones')

    def test_unmatched_name_is_unattributed_and_reported(self):
        item = make_item(index=2, name='Someone Else')

        resolved, conflict = self.matcher.resolve_with_conflict(item, self.records)

        self.assertIsNone(resolved)
        self.assertIsNotNone(conflict)
        self.assertEqual(conflict.stored_index, 2)
        self.assertEqual(conflict.index_name, 'Carla Meier')
        self.assertIsNone(conflict.resolved_index)

    def test_repeated_conflict_is_logged_once(self):
        self.history.record_conflict.return_value = False
        item = make_item(index=0, name='Bob Jones')

        with patch('matching.identity_matcher.logger') as mock_logger:
            self.assertEqual(self.matcher.resolve(item, self.records), 1)
        mock_logger.warning.assert_not_called()
        self.history.record_conflict.assert_called_once()

    def test_out_of_range_index_uses_name(self):
        item = make_item(index=9, name='Carla Meier')
        resolved, conflict = self.matcher.resolve_with_conflict(item, self.records)
        self.assertEqual(resolved, 2)
        self.assertIsNone(conflict)

    def test_name_only(self):
        self.assertEqual(self.matcher.resolve(make_item(name='Alice Smith'), self.records), 0)

    def test_unattributed(self):
        self.assertIsNone(self.matcher.resolve(make_item(), self.records))
        self.assertIsNone(self.matcher.resolve(make_item(index=5, name='Nobody Here'), self.records))
        self.assertIsNone(self.matcher.resolve(make_item(index=0, name='Alice Smith'), []))
        self.history.record_conflict.assert_not_called()

    def test_find_by_name_returns_every_match(self):
        records = self.records + [make_record('Alice', 'Smith', '2019-01-01')]
        self.assertEqual(self.matcher.find_by_name('alice smith', records), [0, 3])
        self.assertEqual(self.matcher.find_by_name('  ', records), [])


class TestNameUtils(unittest.TestCase):
    """Test cases for name normalisation helpers."""

    def test_normalize(self):
        self.assertEqual(NameUtils.normalize('  Anna   MARIA '), 'anna maria')
        self.assertEqual(NameUtils.normalize(None), '')

    def test_names_match(self):
        self.assertTrue(NameUtils.names_match('Anna Maria', 'anna  maria'))
        self.assertFalse(NameUtils.names_match('', ''))
        self.assertFalse(NameUtils.names_match('Anna', 'Anna Maria'))

    def test_split_full_name(self):
        self.assertEqual(NameUtils.split_full_name('Jean Luc Picard'), ('Jean', 'Luc Picard'))
        self.assertEqual(NameUtils.split_full_name('Cher'), ('Cher', ''))


if __name__ == '__main__':
    unittest.main()
