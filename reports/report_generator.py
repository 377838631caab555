"""
Report generator for the roster system.
"""

import logging
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from models.player import GuardianAccount, PlayerRecord
from models.report import DirectoryFilters
from database.cache_manager import DIRECTORY_TAG
from participation.participation_counter import StatusPolicy, is_well_formed_item
from utils.name_utils import NameUtils
from utils.scan_budget import ScanBudget, scan_batches

logger = logging.getLogger(__name__)

OVERVIEW_CACHE_KEY = 'roster_overview'
EXPORT_COLUMNS = ['email', 'first_name', 'last_name', 'region', 'player_name', 'dob', 'gender']


class ReportGenerator:
    """Generates aggregate reports, event rosters and CSV exports."""

    def __init__(self, player_store, config: Dict[str, Any], order_source=None,
                 cache_manager=None, directory_builder=None):
        self.player_store = player_store
        self.config = config
        self.order_source = order_source
        self.cache_manager = cache_manager
        self.directory_builder = directory_builder
        self.matcher = player_store.matcher
        self.policy = StatusPolicy.from_config(config)

        directory_config = config.get('directory', {})
        self.batch_size = int(directory_config.get('batch_size', 25))
        self.max_batches = int(directory_config.get('max_batches', 20))
        self.max_bytes = int(directory_config.get('max_bytes', 300 * 1024 * 1024))
        self.cache_ttl = int(directory_config.get('cache_ttl_minutes', 30)) * 60

    def _scan(self, visit):
        budget = ScanBudget(self.max_batches, self.max_bytes)
        return scan_batches(self.player_store.iter_guardian_batches, self.batch_size, budget, visit)

    def generate_overview(self, refresh: bool = False) -> Dict[str, Any]:
        """
        Totals across every guardian: players, guardians without players,
        players per region and gender, and the five largest regions.
        """
        if self.cache_manager:
            return self.cache_manager.get_or_compute(
                OVERVIEW_CACHE_KEY, self.cache_ttl, self._compute_overview,
                tags=[DIRECTORY_TAG], refresh=refresh
            )
        return self._compute_overview()

    def _compute_overview(self) -> Dict[str, Any]:
        regions: Counter = Counter()
        genders: Counter = Counter()
        totals = {'players': 0, 'with_players': 0}

        def visit(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            if records:
                totals['with_players'] += 1
            for record in records:
                totals['players'] += 1
                regions[record.region or account.region] += 1
                genders[record.gender] += 1

        scanned, truncated = self._scan(visit)
        # Unknown when the scan stopped early
        without_players = None
        if not truncated:
            total_guardians = self.player_store.db_manager.get_database_stats()['guardians']
            without_players = max(total_guardians - totals['with_players'], 0)

        overview = {
            'total_players': totals['players'],
            'guardians_processed': scanned,
            'guardians_without_players': without_players,
            'players_by_region': dict(regions),
            'players_by_gender': dict(genders),
            'top_regions': [{'region': name, 'players': count} for name, count in regions.most_common(5)],
            'truncated': truncated
        }
        logger.info(f"Overview computed: {overview['total_players']} players from {scanned} guardians")
        return overview

    def generate_event_rosters(self) -> Dict[str, Any]:
        """
        Attendees per event name over every guardian's counted orders.
        Line items that resolve to no record are listed under their attendee snapshot.
        """
        if self.order_source is None:
            raise RuntimeError("Event rosters require an order source")

        rosters: Dict[str, List[Dict[str, Any]]] = {}
        statuses = self.policy.counted_statuses()

        def visit(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            for order in self.order_source.get_orders(account.guardian_id, statuses):
                for item in order.line_items or []:
                    if not is_well_formed_item(item):
                        logger.warning(f"Skipping malformed line item in order {order.order_id}")
                        continue
                    index = self.matcher.resolve(item, records, account.guardian_id)
                    record = records[index] if index is not None else None
                    rosters.setdefault(item.event_name or 'Unknown event', []).append({
                        'guardian_id': account.guardian_id,
                        'guardian_email': account.email,
                        'order_id': order.order_id,
                        'player_index': index,
                        'player_name': record.full_name if record else (item.assigned_attendee_name or ''),
                        'date_of_birth': record.date_of_birth.isoformat() if record and record.date_of_birth else '',
                        'gender': record.gender if record else '',
                        'venue': item.venue,
                        'end_date': item.end_date or ''
                    })

        scanned, truncated = self._scan(visit)
        logger.info(f"Built rosters for {len(rosters)} events from {scanned} guardians")
        return {'events': rosters, 'truncated': truncated}

    def export_event_roster_csv(self, event_name: str, output_file: str) -> int:
        """Write one event's roster to CSV. Returns the number of attendees written."""
        attendees = self.generate_event_rosters()['events'].get(event_name, [])
        if not attendees:
            logger.warning(f"No attendees found for event: {event_name}")
            return 0

        df = pd.DataFrame(attendees)
        df.to_csv(output_file, index=False, encoding='utf-8')
        logger.info(f"Exported roster for {event_name} with {len(df)} attendees: {output_file}")
        return len(df)

    def export_players_csv(self, output_file: str, filters: Optional[DirectoryFilters] = None) -> int:
        """
        Export players in the import column layout.
        Returns the number of players exported.
        """
        if self.directory_builder is None:
            raise RuntimeError("Player export requires a directory builder")

        entries, truncated, _ = self.directory_builder.collect_entries(filters, date.today())
        if truncated:
            logger.warning("Player export is incomplete: the scan reached its limit")

        data = []
        for entry in entries:
            guardian_first, guardian_last = NameUtils.split_full_name(entry.guardian_name)
            data.append({
                'email': entry.guardian_email,
                'first_name': guardian_first,
                'last_name': guardian_last,
                'region': entry.region,
                'player_name': f"{entry.first_name} {entry.last_name}".strip(),
                'dob': entry.date_of_birth or '',
                'gender': entry.gender
            })

        df = pd.DataFrame(data, columns=EXPORT_COLUMNS)
        df.to_csv(output_file, index=False, encoding='utf-8')
        logger.info(f"Exported {len(df)} players to {output_file}")
        return len(df)

    def get_player_engagement(self, guardian_id: int) -> Dict[str, int]:
        """Number of counted line items per event name across a guardian's orders."""
        if self.order_source is None:
            raise RuntimeError("Engagement requires an order source")

        engagement: Counter = Counter()
        for order in self.order_source.get_orders(guardian_id, self.policy.counted_statuses()):
            for item in order.line_items:
                engagement[item.event_name or 'Unknown event'] += 1
        return dict(engagement)
