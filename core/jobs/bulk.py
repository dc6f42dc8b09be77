#!/usr/bin/env python3
"""
Bulk Job Importer - validate and create job posts from CSV/XLSX rows.

Flow:
1. load_rows() reads the upload with pandas and normalises column headers
2. parse_bulk_job_data() validates every row independently and partitions
   the batch into valid and invalid rows
3. create_bulk_jobs() creates each valid row in its own transaction, so one
   failing row never blocks the others

Rows are numbered from 1 (the first data row after the header).
"""

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd
from sqlalchemy.orm import sessionmaker

from core.exceptions import ServiceException, ValidationError
from core.geo.geocoder import GeocoderUnavailableError, PostcodeGeocoder
from core.jobs.manager import JobPostManager
from core.jobs.validation import is_valid_postcode_format, validate_job_fields
from core.utils import Clock, caller_uuid, coerce_uuid, local_now
from database.models import CareNeed, Language, Preference
from database.uow import UnitOfWork, unit_of_work

logger = logging.getLogger(__name__)

# Compact header (lower-case, alphanumerics only) -> canonical field name
HEADER_ALIASES = {
    'title': 'title',
    'jobtitle': 'title',
    'overview': 'overview',
    'description': 'overview',
    'name': 'recipient_name',
    'recipientname': 'recipient_name',
    'age': 'recipient_age',
    'recipientage': 'recipient_age',
    'relationship': 'recipient_relationship',
    'recipientrelationship': 'recipient_relationship',
    'gender': 'recipient_gender',
    'recipientgender': 'recipient_gender',
    'postcode': 'postcode',
    'postalcode': 'postcode',
    'address': 'address',
    'date': 'job_date',
    'jobdate': 'job_date',
    'starttime': 'start_time',
    'start': 'start_time',
    'endtime': 'end_time',
    'end': 'end_time',
    'shiftlength': 'shift_length',
    'shifthours': 'shift_length',
    'caregivergender': 'caregiver_gender',
    'type': 'job_type',
    'jobtype': 'job_type',
    'paymenttype': 'payment_type',
    'paymentcost': 'payment_cost',
    'cost': 'payment_cost',
    'careneeds': 'care_needs',
    'languages': 'languages',
    'preferences': 'preferences',
}

REFERENCE_COLUMNS = {
    'care_needs': ('care_need_ids', CareNeed, 'care needs'),
    'languages': ('language_ids', Language, 'languages'),
    'preferences': ('preference_ids', Preference, 'preferences'),
}


def normalize_header(header: Any) -> str:
    compact = re.sub(r'[^a-z0-9]', '', str(header).lower())
    return HEADER_ALIASES.get(compact, str(header).strip().lower().replace(' ', '_'))


def _clean_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def load_rows(path_or_buffer: Union[str, Path, bytes, IO], file_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Read a CSV or XLSX upload into row dicts keyed by canonical field names.

    Parameters:
        path_or_buffer: Path or file-like object.
        file_type: 'csv' or 'xlsx'; inferred from the file extension when omitted.

    Raises:
        ValidationError: If the file cannot be read.
    """
    if file_type is None:
        suffix = Path(str(getattr(path_or_buffer, 'name', path_or_buffer))).suffix.lower()
        file_type = 'xlsx' if suffix in ('.xlsx', '.xls') else 'csv'

    try:
        if file_type == 'xlsx':
            df = pd.read_excel(path_or_buffer, dtype=object)
        else:
            # Keep times and postcodes as text
            df = pd.read_csv(path_or_buffer, dtype=str, keep_default_na=True)
    except (ValueError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationError("Could not read import file", [str(e)]) from e

    df.columns = [normalize_header(c) for c in df.columns]
    df = df.dropna(how='all')

    rows = []
    for record in df.to_dict(orient='records'):
        rows.append({k: _clean_cell(v) for k, v in record.items()})
    logger.info(f"Loaded {len(rows)} rows for import ({file_type})")
    return rows


def _split_names(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(',') if part.strip()]


@dataclass
class ParsedRow:
    row: int
    data: Dict[str, Any]


@dataclass
class InvalidRow:
    row: int
    data: Dict[str, Any]
    errors: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {'row': self.row, 'data': _jsonable(self.data), 'errors': list(self.errors)}


@dataclass
class BulkParseResult:
    valid_rows: List[ParsedRow] = field(default_factory=list)
    invalid_rows: List[InvalidRow] = field(default_factory=list)
    postcode_lookup_degraded: bool = False

    @property
    def summary(self) -> Dict[str, int]:
        return {
            'total': len(self.valid_rows) + len(self.invalid_rows),
            'valid': len(self.valid_rows),
            'invalid': len(self.invalid_rows),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid_rows': [{'row': r.row, 'data': _jsonable(r.data)} for r in self.valid_rows],
            'invalid_rows': [r.to_dict() for r in self.invalid_rows],
            'summary': self.summary,
            'postcode_lookup_degraded': self.postcode_lookup_degraded,
        }


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in data.items():
        if hasattr(v, 'isoformat'):
            out[k] = v.isoformat()
        elif isinstance(v, (list, tuple)):
            out[k] = [str(i) for i in v]
        else:
            out[k] = v
    return out


class BulkJobImporter:
    """Validates import batches and creates their rows one at a time."""

    def __init__(
        self,
        session_factory: sessionmaker,
        manager: JobPostManager,
        geocoder: Optional[PostcodeGeocoder] = None,
        clock: Clock = local_now,
        max_rows: int = 500,
        verify_postcodes: bool = True,
    ):
        self.session_factory = session_factory
        self.manager = manager
        self.geocoder = geocoder
        self.clock = clock
        self.max_rows = max_rows
        self.verify_postcodes = verify_postcodes

    def parse_bulk_job_data(self, owner_id: Any, rows: Sequence[Dict[str, Any]]) -> BulkParseResult:
        """
        Validate every row and partition the batch.

        Checks per row: required fields, numeric bounds, enumerated values,
        postcode format and existence, job date not in the past, reference
        names, an existing post at the same date and start time, and another
        row of the same batch at the same date and start time.
        """
        owner_id = caller_uuid(owner_id)
        if len(rows) > self.max_rows:
            raise ValidationError(
                "Import file is too large",
                [f"{len(rows)} rows supplied; the maximum is {self.max_rows}"],
            )

        now = self.clock()
        result = BulkParseResult()
        checked: List[Tuple[int, Dict[str, Any], Dict[str, Any], List[str]]] = []
        postcode_cache: Dict[str, Optional[bool]] = {}

        with unit_of_work(self.session_factory) as uow:
            references = self._load_reference_names(uow, rows)

            for index, raw in enumerate(rows, start=1):
                data = {k: v for k, v in raw.items() if k not in REFERENCE_COLUMNS}
                cleaned, errors = validate_job_fields(data, now)

                for column, (ids_field, model, label) in REFERENCE_COLUMNS.items():
                    names = _split_names(raw.get(column))
                    if not names:
                        continue
                    lookup = references[column]
                    unknown = [n for n in names if n.lower() not in lookup]
                    if unknown:
                        errors.append(f"Unknown {label}: {', '.join(unknown)}")
                    else:
                        cleaned[ids_field] = [lookup[n.lower()].id for n in names]

                postcode = cleaned.get('postcode')
                if postcode and is_valid_postcode_format(postcode):
                    exists = self._postcode_exists(postcode, postcode_cache, result)
                    if exists is False:
                        errors.append(f"Postcode {postcode} does not exist")

                if cleaned.get('job_date') and cleaned.get('start_time'):
                    if uow.job_posts.has_slot(owner_id, cleaned['job_date'], cleaned['start_time']):
                        errors.append(
                            f"A job post already exists on {cleaned['job_date'].isoformat()} at {cleaned['start_time']}"
                        )

                checked.append((index, dict(raw), cleaned, errors))

        self._flag_batch_duplicates(checked)

        for index, raw, cleaned, errors in checked:
            if errors:
                result.invalid_rows.append(InvalidRow(row=index, data=raw, errors=errors))
            else:
                result.valid_rows.append(ParsedRow(row=index, data=cleaned))

        logger.info(f"Bulk parse for owner {owner_id}: {result.summary}")
        return result

    def create_bulk_jobs(self, owner_id: Any, rows: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate the batch, then create each valid row in its own transaction.

        Returns:
            Per-row results plus the invalid rows and summary counts.
        """
        parsed = self.parse_bulk_job_data(owner_id, rows)

        results = []
        for row in parsed.valid_rows:
            try:
                view = self.manager.create_job_post(owner_id, row.data)
                results.append({'row': row.row, 'success': True, 'job_post_id': view['id']})
            except ServiceException as e:
                logger.warning(f"Bulk row {row.row} failed: {e.message}")
                results.append({
                    'row': row.row,
                    'success': False,
                    'errors': [e.message] + [str(d) for d in e.details],
                })

        created = sum(1 for r in results if r['success'])
        summary = {
            'total': parsed.summary['total'],
            'created': created,
            'failed': len(results) - created,
            'invalid': len(parsed.invalid_rows),
        }
        logger.info(f"Bulk import for owner {owner_id}: {summary}")
        return {
            'results': results,
            'invalid_rows': [r.to_dict() for r in parsed.invalid_rows],
            'summary': summary,
            'postcode_lookup_degraded': parsed.postcode_lookup_degraded,
        }

    def _load_reference_names(self, uow: UnitOfWork, rows: Sequence[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        lookups = {}
        for column, (_, model, _) in REFERENCE_COLUMNS.items():
            names = set()
            for raw in rows:
                names.update(_split_names(raw.get(column)))
            lookups[column] = uow.reference.by_names(model, names)
        return lookups

    def _postcode_exists(self, postcode: str, cache: Dict[str, Optional[bool]], result: BulkParseResult) -> Optional[bool]:
        """True/False from the geocoder; None when unchecked (lookup off or unavailable)."""
        if not self.verify_postcodes or self.geocoder is None or result.postcode_lookup_degraded:
            return None
        key = postcode.replace(' ', '').upper()
        if key in cache:
            return cache[key]
        try:
            cache[key] = self.geocoder.is_valid(postcode)
        except GeocoderUnavailableError as e:
            # Format-only validation for the rest of the batch
            logger.warning(f"Postcode lookup unavailable, falling back to format checks: {e}")
            result.postcode_lookup_degraded = True
            return None
        return cache[key]

    @staticmethod
    def _flag_batch_duplicates(checked: List[Tuple[int, Dict[str, Any], Dict[str, Any], List[str]]]) -> None:
        slots: Dict[Tuple[Any, str], List[int]] = {}
        for index, _, cleaned, _ in checked:
            if cleaned.get('job_date') and cleaned.get('start_time'):
                slots.setdefault((cleaned['job_date'], cleaned['start_time']), []).append(index)

        for (job_date, start_time), indexes in slots.items():
            if len(indexes) < 2:
                continue
            for index, _, _, errors in checked:
                if index in indexes:
                    others = ', '.join(str(i) for i in indexes if i != index)
                    errors.append(
                        f"Duplicate date and start time in this import ({job_date.isoformat()} {start_time}; also row {others})"
                    )
