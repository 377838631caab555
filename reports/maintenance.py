"""
Bulk maintenance over every guardian's player list.

Passes run in budgeted batches and collect per-guardian errors into a
MaintenanceReport instead of stopping at the first failure.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from models.errors import RosterError, TransientBackendError
from models.player import GuardianAccount, PlayerRecord
from models.report import MaintenanceReport
from matching.eligibility import EligibilityClassifier
from utils.scan_budget import ScanBudget, scan_batches

logger = logging.getLogger(__name__)


class MaintenanceManager:
    """Administrative cleanup: ineligible flagging, purging and data erasure."""

    def __init__(self, player_store, config: Dict[str, Any],
                 classifier: Optional[EligibilityClassifier] = None):
        self.player_store = player_store
        self.classifier = classifier or EligibilityClassifier(config)

        maintenance_config = config.get('maintenance', {})
        self.batch_size = int(maintenance_config.get('batch_size', 100))
        self.max_batches = int(maintenance_config.get('max_batches', 50))

    def _is_over_age(self, record: PlayerRecord, reference_date: date) -> bool:
        classification = self.classifier.classify(record.date_of_birth, reference_date)
        return bool(classification and classification.ineligible)

    def _run(self, report: MaintenanceReport, visit) -> MaintenanceReport:
        budget = ScanBudget(self.max_batches)

        def guarded(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            report.records_examined += len(records)
            try:
                visit(account, records)
            except TransientBackendError:
                raise
            except RosterError as e:
                logger.error(f"{report.action} failed for guardian {account.guardian_id}: {e}")
                report.errors.append((account.guardian_id, str(e)))

        report.guardians_processed, report.truncated = scan_batches(
            self.player_store.iter_guardian_batches, self.batch_size, budget, guarded
        )
        logger.info(
            f"{report.action}: {report.records_affected} of {report.records_examined} records affected "
            f"across {report.guardians_processed} guardians"
            f"{' (dry run)' if report.dry_run else ''}{' (truncated)' if report.truncated else ''}"
        )
        return report

    def flag_ineligible_players(self, reference_date: Optional[date] = None) -> MaintenanceReport:
        """Set the ineligible flag on every record past the cutoff age."""
        reference_date = reference_date or date.today()
        report = MaintenanceReport(action='flag_ineligible')

        def visit(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            for record in records:
                if record.ineligible or not self._is_over_age(record, reference_date):
                    continue
                index = self.player_store.find_index(account.guardian_id, record.player_id)
                if index is not None and self.player_store.set_ineligible(account.guardian_id, index, True):
                    report.records_affected += 1

        return self._run(report, visit)

    def purge_ineligible_players(self, confirm: bool = False,
                                 reference_date: Optional[date] = None) -> MaintenanceReport:
        """
        Remove records that are flagged ineligible or past the cutoff age.
        Without confirm nothing is removed and records_affected is the number that would be.
        """
        reference_date = reference_date or date.today()
        report = MaintenanceReport(action='purge_ineligible', dry_run=not confirm)

        def should_purge(record: PlayerRecord) -> bool:
            return record.ineligible or self._is_over_age(record, reference_date)

        def visit(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            if not confirm:
                report.records_affected += sum(1 for record in records if should_purge(record))
                return
            removed = self.player_store.remove_where(account.guardian_id, should_purge, 'PURGE')
            report.records_affected += len(removed)

        return self._run(report, visit)

    def erase_guardian_data(self, guardian_id: int) -> MaintenanceReport:
        """Remove a guardian's whole player list and personal history."""
        removed = self.player_store.delete_all(guardian_id)
        report = MaintenanceReport(
            action='erase_guardian_data',
            guardians_processed=1,
            records_examined=removed,
            records_affected=removed
        )
        logger.info(f"Erased player data of guardian {guardian_id}: {removed} records")
        return report
