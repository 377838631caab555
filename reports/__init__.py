"""
Reports package for the roster system.
"""

from .directory_builder import DirectoryBuilder
from .report_generator import ReportGenerator
from .csv_importer import CsvImporter
from .maintenance import MaintenanceManager

__all__ = ['DirectoryBuilder', 'ReportGenerator', 'CsvImporter', 'MaintenanceManager']
