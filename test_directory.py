#!/usr/bin/env python3
"""
Test suite for the paginated player directory.

This test suite covers:
- Page slicing and totals
- Search, region, gender and age group filters
- Page caching, invalidation and refresh
- The batch and byte safety caps
"""

import unittest
import tempfile
import os
import shutil
import yaml
from datetime import date

from config.config_manager import ConfigManager
from database.database_manager import DatabaseManager
from database.cache_manager import CacheManager
from database.guardian_manager import GuardianManager
from database.history_manager import HistoryManager
from database.player_store import PlayerStore
from models.errors import ResourceBudgetExceeded
from models.order import Order, OrderLineItemReference
from models.player import GuardianAccount, PlayerRecord
from models.report import DirectoryFilters, DirectoryPage
from orders.order_repository import OrderRepository
from participation.participation_counter import ParticipationCounter
from reports.directory_builder import DirectoryBuilder
from utils.scan_budget import ScanBudget
from utils.text_utils import TextUtils

FIRST_NAMES = ['Lena', 'Elias', 'Mila', 'Noah', 'Lia']
REFERENCE_DATE = date(2024, 9, 1)


class TestDirectoryBuilder(unittest.TestCase):
    """Test cases for DirectoryBuilder over a real store."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.test_db_path = os.path.join(self.test_dir, "test_roster.db")
        self.test_config_path = os.path.join(self.test_dir, "test_config.yaml")
        with open(self.test_config_path, 'w') as f:
            yaml.dump({'directory': {'page_size': 20, 'batch_size': 4, 'max_batches': 100}}, f)

        self.db = DatabaseManager(self.test_db_path, self.test_config_path)
        self.cache = CacheManager(self.db)
        self.store = PlayerStore(self.db, self.cache, HistoryManager(self.db))
        self.guardians = GuardianManager(self.db)
        self.builder = DirectoryBuilder(self.store, self.db.config, self.cache)

        # 9 guardians with 5 players each
        self.guardian_ids = []
        for number in range(9):
            region = 'Geneva' if number % 3 == 0 else 'Zurich'
            guardian_id = self.guardians.add_guardian(f"parent{number}@example.com", f"Parent {number}", region)
            self.guardian_ids.append(guardian_id)
            for offset, first_name in enumerate(FIRST_NAMES):
                self.store.add(guardian_id, {
                    'first_name': first_name,
                    'last_name': f"Family{number}",
                    'date_of_birth': f"{2012 + offset}-05-0{offset + 1}",
                    'gender': 'female' if offset % 2 == 0 else 'male',
                    'national_insurance_number': f"CH{number}{offset}XY"
                })

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_pagination_totals(self):
        """45 records with page size 20 make three pages."""
        first = self.builder.build_page(page_number=1, reference_date=REFERENCE_DATE)
        third = self.builder.build_page(page_number=3, reference_date=REFERENCE_DATE)

        self.assertEqual(first.total_items, 45)
        self.assertEqual(first.total_pages, 3)
        self.assertEqual(len(first.filtered_records), 20)
        self.assertEqual(len(third.filtered_records), 5)
        self.assertFalse(first.truncated)
        self.assertEqual(first.guardians_scanned, 9)

    def test_out_of_range_page_is_empty(self):
        for page_number in (4, 0, -1):
            with self.subTest(page_number=page_number):
                page = self.builder.build_page(page_number=page_number, reference_date=REFERENCE_DATE)
                self.assertEqual(page.filtered_records, [])
                self.assertEqual(page.total_items, 45)
                self.assertEqual(page.total_pages, 3)

    def test_page_size_must_be_positive(self):
        for page_size in (0, -1):
            with self.subTest(page_size=page_size):
                with self.assertRaises(ValueError):
                    self.builder.build_page(page_size=page_size, reference_date=REFERENCE_DATE)

    def test_pages_follow_guardian_order(self):
        pages = [self.builder.build_page(page_number=n, reference_date=REFERENCE_DATE) for n in (1, 2, 3)]
        entries = [entry for page in pages for entry in page.filtered_records]

        self.assertEqual(len({(entry.guardian_id, entry.index) for entry in entries}), 45)
        self.assertEqual([entry.guardian_id for entry in entries],
                         sorted(entry.guardian_id for entry in entries))
        self.assertEqual(entries[0].first_name, 'Lena')
        self.assertEqual(entries[0].guardian_email, 'parent0@example.com')

    def test_search_filter(self):
        page = self.builder.build_page(DirectoryFilters(search='family3'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 5)

        page = self.builder.build_page(DirectoryFilters(search='ch42xy'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 1)
        self.assertEqual(page.filtered_records[0].first_name, 'Mila')

        page = self.builder.build_page(DirectoryFilters(search='parent'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 0)

    def test_region_falls_back_to_guardian_billing_state(self):
        page = self.builder.build_page(DirectoryFilters(region='Geneva'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 15)

        self.store.edit(self.guardian_ids[1], 0, {'region': 'Geneva'})
        page = self.builder.build_page(DirectoryFilters(region='Geneva'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 16)

    def test_region_filter_is_exact(self):
        for region in ('geneva', 'GENEVA', 'Gene'):
            with self.subTest(region=region):
                page = self.builder.build_page(DirectoryFilters(region=region), reference_date=REFERENCE_DATE)
                self.assertEqual(page.total_items, 0)

    def test_gender_and_age_group_filters(self):
        page = self.builder.build_page(DirectoryFilters(gender='Male'), reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 18)

        # Born 2012 to 2016: ages 12, 11, 10, 9 and 8 on the reference date
        page = self.builder.build_page(DirectoryFilters(age_group='youth-bracket-2'),
                                       reference_date=REFERENCE_DATE)
        self.assertEqual(page.total_items, 45)

        page = self.builder.build_page(DirectoryFilters(age_group='adult-ineligible'),
                                       reference_date=date(2026, 9, 1))
        self.assertEqual(page.total_items, 9)

        entry = self.builder.build_page(reference_date=REFERENCE_DATE).filtered_records[0]
        self.assertEqual(entry.age, 12)
        self.assertEqual(entry.age_group, 'youth-bracket-2')

    def test_pages_are_cached(self):
        first = self.builder.build_page(page_number=2, reference_date=REFERENCE_DATE)
        second = self.builder.build_page(page_number=2, reference_date=REFERENCE_DATE)

        self.assertFalse(first.from_cache)
        self.assertTrue(second.from_cache)
        self.assertEqual(second.filtered_records, first.filtered_records)
        self.assertEqual(second.total_items, 45)

    def test_refresh_bypasses_cache(self):
        self.builder.build_page(reference_date=REFERENCE_DATE)
        page = self.builder.build_page(reference_date=REFERENCE_DATE, refresh=True)
        self.assertFalse(page.from_cache)

    def test_store_mutation_invalidates_pages(self):
        self.builder.build_page(reference_date=REFERENCE_DATE)
        self.store.delete(self.guardian_ids[0], 0)

        page = self.builder.build_page(reference_date=REFERENCE_DATE)
        self.assertFalse(page.from_cache)
        self.assertEqual(page.total_items, 44)
        self.assertEqual(page.total_pages, 3)

    def test_cache_key_depends_on_every_input(self):
        filters = DirectoryFilters(search='lena')
        key = filters.cache_key(1, 20, '2024-09-01')
        self.assertEqual(key, DirectoryFilters(search=' LENA ').cache_key(1, 20, '2024-09-01'))
        self.assertNotEqual(key, filters.cache_key(2, 20, '2024-09-01'))
        self.assertNotEqual(key, filters.cache_key(1, 10, '2024-09-01'))
        self.assertNotEqual(key, DirectoryFilters(search='lena', gender='female').cache_key(1, 20, '2024-09-01'))

    def test_event_counts(self):
        orders = OrderRepository(self.db, self.store, self.cache)
        counter = ParticipationCounter(self.store, orders, self.db.config, cache_manager=self.cache)
        builder = DirectoryBuilder(self.store, self.db.config, self.cache, counter)
        orders.add_order(Order(order_id=1, guardian_id=self.guardian_ids[0], status='completed', line_items=[
            OrderLineItemReference(item_id=1, order_id=1, event_name='Camp', assigned_attendee_name='Elias Family0'),
            OrderLineItemReference(item_id=2, order_id=1, event_name='Course', player_record_index=1),
        ]))

        page = builder.build_page(reference_date=REFERENCE_DATE, include_event_counts=True)

        counts = [entry.event_count for entry in page.filtered_records[:5]]
        self.assertEqual(counts, [0, 2, 0, 0, 0])
        plain = builder.build_page(reference_date=REFERENCE_DATE)
        self.assertIsNone(plain.filtered_records[1].event_count)

    def test_page_round_trips_through_dict(self):
        page = self.builder.build_page(reference_date=REFERENCE_DATE)
        self.assertEqual(DirectoryPage.from_dict(page.to_dict()), page)


class SyntheticStore:
    """Store stand-in serving many guardians with one player each."""

    def __init__(self, guardian_count, blob_size=200):
        self.guardian_count = guardian_count
        self.blob_size = blob_size
        self.calls = 0
        self.record = PlayerRecord(first_name='Yara', last_name='Test', date_of_birth=date(2015, 1, 1),
                                   gender='female', player_id='synthetic')

    def iter_guardian_batches(self, batch_size, offset=0):
        self.calls += 1
        end = min(offset + batch_size, self.guardian_count)
        return [
            (GuardianAccount(guardian_id=guardian_id, email=f"g{guardian_id}@example.com"), [self.record],
             self.blob_size)
            for guardian_id in range(offset + 1, end + 1)
        ]


class TestDirectorySafetyCap(unittest.TestCase):
    """Test cases for the batch and byte limits."""

    def build(self, store, **directory):
        config = ConfigManager.merge(ConfigManager.get_default_config(), {'directory': directory})
        return DirectoryBuilder(store, config)

    def test_ten_thousand_guardians_hit_batch_cap(self):
        store = SyntheticStore(10000)
        builder = self.build(store, batch_size=500, max_batches=20)

        page = builder.build_page(reference_date=REFERENCE_DATE)

        self.assertTrue(page.truncated)
        self.assertEqual(store.calls, 20)
        self.assertEqual(page.guardians_scanned, 10000)
        self.assertEqual(page.total_items, 10000)
        self.assertEqual(len(page.filtered_records), 20)

    def test_scan_stops_at_batch_cap(self):
        store = SyntheticStore(10000)
        builder = self.build(store, batch_size=500, max_batches=5)

        page = builder.build_page(reference_date=REFERENCE_DATE)

        self.assertTrue(page.truncated)
        self.assertEqual(store.calls, 5)
        self.assertEqual(page.total_items, 2500)
        self.assertEqual(page.total_pages, 125)

    def test_scan_stops_at_byte_cap(self):
        store = SyntheticStore(1000, blob_size=1000)
        builder = self.build(store, batch_size=100, max_batches=100, max_bytes=250000)

        page = builder.build_page(reference_date=REFERENCE_DATE)

        self.assertTrue(page.truncated)
        self.assertEqual(page.guardians_scanned, 300)

    def test_short_final_batch_is_not_truncated(self):
        store = SyntheticStore(30)
        builder = self.build(store, batch_size=25, max_batches=2)

        page = builder.build_page(reference_date=REFERENCE_DATE)

        self.assertFalse(page.truncated)
        self.assertEqual(page.total_items, 30)


class TestScanBudget(unittest.TestCase):
    """Test cases for ScanBudget and the text helpers it reports with."""

    def test_batch_limit(self):
        budget = ScanBudget(max_batches=2)
        budget.charge(10)
        with self.assertRaises(ResourceBudgetExceeded) as ctx:
            budget.charge(10)
        self.assertEqual(ctx.exception.batches, 2)
        self.assertEqual(ctx.exception.bytes_scanned, 20)

    def test_byte_limit(self):
        budget = ScanBudget(max_batches=0, max_bytes=1024)
        budget.charge(1000)
        with self.assertRaises(ResourceBudgetExceeded) as ctx:
            budget.charge(24)
        self.assertEqual(ctx.exception.reason, 'byte limit reached')

    def test_format_bytes(self):
        self.assertEqual(TextUtils.format_bytes(512), '512 B')
        self.assertEqual(TextUtils.format_bytes(300 * 1024 * 1024), '300.0 MB')

    def test_contains(self):
        self.assertTrue(TextUtils.contains('Keller', ' kel'))
        self.assertTrue(TextUtils.contains(None, ''))
        self.assertFalse(TextUtils.contains(None, 'a'))


if __name__ == '__main__':
    unittest.main()
