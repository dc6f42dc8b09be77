from core.jobs.manager import JobPostManager
from core.jobs.bulk import BulkJobImporter, BulkParseResult, load_rows

__all__ = [
    'JobPostManager',
    'BulkJobImporter',
    'BulkParseResult',
    'load_rows',
]
