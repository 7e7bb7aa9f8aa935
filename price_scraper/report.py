"""
Report Writer
=============

Turns merged PriceObservations into:
    output/<Commodity>_prices.csv    one per commodity, sorted by date,
                                     deduplicated by (day, price, price type)
    output/all_prices_data.json      run metadata + every valid record

Each record is validated on its own; a malformed record is skipped with a
warning instead of failing the whole report.
"""

import csv
import json
import re
from dataclasses import dataclass, field
from datetime import date as Date, datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .extraction import normalize_price
from .logger import get_logger
from .models import PriceObservation, PriceType, ScrapeJob

log = get_logger('report')

CSV_HEADER = [
    'Month', 'Product Name', 'Price Range', 'Price Type',
    'Source Date', 'Article Title', 'Article URL',
]
JSON_FILENAME = 'all_prices_data.json'


class PriceRecord(BaseModel):
    """Validated, serializable form of a PriceObservation."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    date: Date
    commodity: str = Field(min_length=1)
    price: str = Field(min_length=1)
    price_type: PriceType = Field(alias='priceType')
    article_title: str = Field('', alias='articleTitle')
    article_url: str = Field('', alias='articleUrl')
    context: Optional[str] = None
    confidence: str = 'high'
    variant: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def _date_part(cls, value):
        # Accept full timestamps ("2024-03-05T10:00:00+06:00") by their day
        if isinstance(value, str) and len(value) > 10 and value[10] in 'T ':
            return value[:10]
        return value

    @property
    def month(self) -> str:
        return self.date.strftime('%Y-%m')

    @property
    def source_date(self) -> str:
        return self.date.strftime('%d %b %Y')

    def csv_row(self) -> List[str]:
        return [
            self.month,
            self.commodity,
            self.price,
            self.price_type.value,
            self.source_date,
            self.article_title,
            self.article_url,
        ]


class ReportMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_range: Dict[str, Optional[str]] = Field(alias='dateRange')
    total_entries: int = Field(alias='totalEntries')
    commodities: List[str]
    generated_at: str = Field(alias='generatedAt')


@dataclass
class ReportPaths:
    csv_files: Dict[str, Path] = field(default_factory=dict)
    json_file: Optional[Path] = None
    total_entries: int = 0
    skipped_records: int = 0


def commodity_filename(commodity: str) -> str:
    name = re.sub(r'[^\w\s]', '', commodity)
    name = re.sub(r'\s+', '_', name.strip())
    return f"{name}_prices.csv"


def validate_records(observations: Iterable[Union[PriceObservation, dict]]) -> Tuple[List[PriceRecord], int]:
    """Validate observations one by one; returns (valid records, skipped count)."""
    records = []
    skipped = 0
    for index, observation in enumerate(observations):
        raw = observation.to_dict() if isinstance(observation, PriceObservation) else observation
        try:
            records.append(PriceRecord.model_validate(raw))
        except (ValidationError, TypeError) as e:
            skipped += 1
            log.warning(f"Skipping malformed record #{index}: {e}")
    return records, skipped


def group_by_commodity(records: Iterable[PriceRecord]) -> Dict[str, List[PriceRecord]]:
    """
    Group records by commodity, sort each group by date (stable) and drop
    repeats of (day, normalized price, price type).
    """
    groups: Dict[str, List[PriceRecord]] = {}
    for record in records:
        groups.setdefault(record.commodity, []).append(record)

    for commodity, items in groups.items():
        items.sort(key=lambda r: r.date)
        seen = set()
        unique = []
        for record in items:
            key = (record.date, normalize_price(record.price), record.price_type)
            if key in seen:
                continue
            seen.add(key)
            unique.append(record)
        groups[commodity] = unique
    return groups


class ReportWriter:
    """Writes per-commodity CSVs and the combined JSON into output_dir."""

    def __init__(self, output_dir: Union[str, Path] = 'output'):
        self.output_dir = Path(output_dir)

    def write(
        self,
        observations: Iterable[Union[PriceObservation, dict]],
        job: Optional[ScrapeJob] = None,
    ) -> ReportPaths:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        records, skipped = validate_records(observations)
        groups = group_by_commodity(records)
        paths = ReportPaths(total_entries=len(records), skipped_records=skipped)

        for commodity, items in groups.items():
            filepath = self.output_dir / commodity_filename(commodity)
            self._write_csv(filepath, items)
            paths.csv_files[commodity] = filepath
            log.info(f"Created: {filepath.name} ({len(items)} entries)")

        paths.json_file = self._write_json(records, list(groups), job)
        log.info(
            f"Summary: {len(records)} total price entries across {len(groups)} commodities"
            + (f" ({skipped} malformed skipped)" if skipped else "")
        )
        return paths

    def _write_csv(self, filepath: Path, records: List[PriceRecord]):
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for record in records:
                writer.writerow(record.csv_row())

    def _write_json(self, records: List[PriceRecord], commodities: List[str], job: Optional[ScrapeJob]) -> Path:
        start, end = job.date_range if job else (None, None)
        metadata = ReportMetadata(
            date_range={'start': start, 'end': end},
            total_entries=len(records),
            commodities=commodities,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        payload = {
            'metadata': metadata.model_dump(mode='json', by_alias=True),
            'data': [r.model_dump(mode='json', by_alias=True) for r in records],
        }
        filepath = self.output_dir / JSON_FILENAME
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return filepath
