"""
Command line entry point for the player roster system.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from config.config_manager import ConfigManager
from database.database_manager import DatabaseManager
from database.cache_manager import CacheManager
from database.guardian_manager import GuardianManager
from database.history_manager import HistoryManager
from database.player_store import PlayerStore
from matching.identity_matcher import IdentityMatcher
from models.errors import RosterError
from models.report import DirectoryFilters
from orders.order_repository import OrderRepository
from orders.rest_client import WooCommerceOrderClient
from participation.participation_counter import ParticipationCounter
from reports.csv_importer import CsvImporter
from reports.directory_builder import DirectoryBuilder
from reports.maintenance import MaintenanceManager
from reports.report_generator import ReportGenerator

logger = logging.getLogger(__name__)


class RosterSystem:
    """Wires the roster components to one database and configuration."""

    def __init__(self, db_path: str = "roster.db", config_file: str = "config.yaml",
                 use_remote_orders: bool = False):
        self.config = ConfigManager.load_config(config_file)
        self.db_manager = DatabaseManager(db_path, config=self.config)
        self.cache_manager = CacheManager(self.db_manager)
        self.history_manager = HistoryManager(self.db_manager)
        self.guardian_manager = GuardianManager(self.db_manager)
        self.matcher = IdentityMatcher(self.history_manager)
        self.player_store = PlayerStore(
            self.db_manager, self.cache_manager, self.history_manager, self.matcher
        )
        self.order_repository = OrderRepository(self.db_manager, self.player_store, self.cache_manager)
        self.order_source = WooCommerceOrderClient(self.config) if use_remote_orders else self.order_repository
        self.participation_counter = ParticipationCounter(
            self.player_store, self.order_source, self.config, self.matcher, self.cache_manager
        )
        self.directory_builder = DirectoryBuilder(
            self.player_store, self.config, self.cache_manager, self.participation_counter
        )
        self.report_generator = ReportGenerator(
            self.player_store, self.config, self.order_source, self.cache_manager, self.directory_builder
        )
        self.csv_importer = CsvImporter(self.player_store, self.guardian_manager)
        self.maintenance = MaintenanceManager(self.player_store, self.config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Player roster administration")
    parser.add_argument('--db', default='roster.db', help="SQLite database file")
    parser.add_argument('--config', default='config.yaml', help="YAML configuration file")
    parser.add_argument('--remote-orders', action='store_true', help="Read orders from the shop API")
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('stats', help="Show database statistics")

    import_parser = subparsers.add_parser('import', help="Import players from CSV")
    import_parser.add_argument('csv_file')
    import_parser.add_argument('--delimiter', default=',')

    export_parser = subparsers.add_parser('export', help="Export players to CSV")
    export_parser.add_argument('output_file')

    directory_parser = subparsers.add_parser('directory', help="Show one directory page")
    directory_parser.add_argument('--page', type=int, default=1)
    directory_parser.add_argument('--page-size', type=int)
    directory_parser.add_argument('--search', default='')
    directory_parser.add_argument('--region', default='')
    directory_parser.add_argument('--gender', default='')
    directory_parser.add_argument('--age-group', default='')
    directory_parser.add_argument('--events', action='store_true', help="Include event counts")
    directory_parser.add_argument('--refresh', action='store_true')

    overview_parser = subparsers.add_parser('overview', help="Show the player overview")
    overview_parser.add_argument('--refresh', action='store_true')

    roster_parser = subparsers.add_parser('roster', help="Export one event roster")
    roster_parser.add_argument('event_name')
    roster_parser.add_argument('output_file')

    subparsers.add_parser('flag-ineligible', help="Flag players past the cutoff age")

    purge_parser = subparsers.add_parser('purge-ineligible', help="Remove ineligible players")
    purge_parser.add_argument('--confirm', action='store_true', help="Actually remove; otherwise only count")

    erase_parser = subparsers.add_parser('erase', help="Erase one guardian's player data")
    erase_parser.add_argument('guardian_id', type=int)

    subparsers.add_parser('clear-cache', help="Drop every cached page and aggregate")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = build_parser().parse_args(argv)

    try:
        system = RosterSystem(args.db, args.config, args.remote_orders)

        if args.command == 'stats':
            stats = system.db_manager.get_database_stats()
            stats['history'] = system.history_manager.get_history_statistics()
            print(json.dumps(stats, indent=2, default=str))
        elif args.command == 'import':
            report = system.csv_importer.import_file(args.csv_file, delimiter=args.delimiter)
            print(f"Imported {report.imported}/{report.rows_total}, "
                  f"{report.duplicates} duplicates, {report.rejected} rejected")
            for row_number, message in report.errors:
                print(f"  row {row_number}: {message}")
        elif args.command == 'export':
            count = system.report_generator.export_players_csv(args.output_file)
            print(f"Exported {count} players to {args.output_file}")
        elif args.command == 'directory':
            filters = DirectoryFilters(args.search, args.region, args.gender, args.age_group)
            page = system.directory_builder.build_page(
                filters, args.page, args.page_size, refresh=args.refresh, include_event_counts=args.events
            )
            print(json.dumps(page.to_dict(), indent=2, default=str))
        elif args.command == 'overview':
            print(json.dumps(system.report_generator.generate_overview(refresh=args.refresh), indent=2))
        elif args.command == 'roster':
            count = system.report_generator.export_event_roster_csv(args.event_name, args.output_file)
            print(f"Exported {count} attendees to {args.output_file}")
        elif args.command == 'flag-ineligible':
            print(system.maintenance.flag_ineligible_players())
        elif args.command == 'purge-ineligible':
            print(system.maintenance.purge_ineligible_players(confirm=args.confirm))
        elif args.command == 'erase':
            print(system.maintenance.erase_guardian_data(args.guardian_id))
        elif args.command == 'clear-cache':
            system.cache_manager.clear()
        return 0

    except RosterError as e:
        logger.error(f"Roster error: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
