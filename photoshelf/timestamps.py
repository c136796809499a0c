"""Date resolution from sidecar metadata records and embedded EXIF tags."""

import csv
import json
import re
import subprocess
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Optional

from .constants import (DETAILS_CREATION_DATE_COLUMN, DETAILS_DATE_FORMAT,
                        DETAILS_FILENAME_COLUMN, DETAILS_IMPORT_DATE_COLUMN,
                        DETAILS_MIN_COLUMNS, EPOCH_DATE, EXIF_DATE_FORMAT,
                        JPG_EXTENSIONS, UNKNOWN_EXIF_DATE, exiftool_available,
                        get_logger)
from .errors import MetadataParseError


logger = get_logger("photoshelf.timestamps")

# The trailing zone abbreviation (GMT, PST, ...) is optional and ignored: the
# wall-clock date as written is the date we bucket by.
_DETAILS_STAMP = re.compile(
    r'^\s*(?P<stamp>.+?\d{1,2}:\d{2}\s*[AaPp][Mm])(?:\s+(?P<zone>[A-Za-z][\w+\-:/]*))?\s*$'
)


@dataclass(frozen=True)
class PhotoDetails:
    """Canonical capture date for one file, keyed by its bare filename."""
    filename: str
    creation_date: date


def parse_details_date(text: str) -> date:
    """Parse a sidecar timestamp like 'Saturday January 21,2023 2:51 PM GMT'."""
    match = _DETAILS_STAMP.match(text)
    if not match:
        raise MetadataParseError(f"Unrecognized date: {text!r}")

    stamp = re.sub(r'\s+', ' ', match.group('stamp'))
    try:
        return datetime.strptime(stamp, DETAILS_DATE_FORMAT).date()
    except ValueError as e:
        raise MetadataParseError(f"Unrecognized date: {text!r}") from e


def resolve_record_date(creation_text: str, import_text: str) -> date:
    """Pick the creation date, falling back to the import date."""
    if creation_text and creation_text.strip():
        return parse_details_date(creation_text)
    if import_text and import_text.strip():
        return parse_details_date(import_text)
    raise MetadataParseError("Record has neither a creation date nor an import date")


def read_photo_details_file(details_file: Path) -> Dict[str, PhotoDetails]:
    """Read one sidecar CSV file into a filename -> PhotoDetails mapping.

    The first row is a header. Any malformed record aborts the whole file
    with MetadataParseError naming the file and line.
    """
    result: Dict[str, PhotoDetails] = {}

    try:
        with open(details_file, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.reader(f)
            next(reader, None)
            for row in reader:
                if not any(cell.strip() for cell in row):
                    continue

                if len(row) < DETAILS_MIN_COLUMNS:
                    raise MetadataParseError(
                        f"{details_file}:{reader.line_num}: expected at least "
                        f"{DETAILS_MIN_COLUMNS} fields, got {len(row)}"
                    )

                filename = row[DETAILS_FILENAME_COLUMN].strip()
                try:
                    creation_date = resolve_record_date(row[DETAILS_CREATION_DATE_COLUMN],
                                                        row[DETAILS_IMPORT_DATE_COLUMN])
                except MetadataParseError as e:
                    raise MetadataParseError(f"{details_file}:{reader.line_num}: {e}") from e

                result[filename] = PhotoDetails(filename=filename, creation_date=creation_date)

    except (UnicodeDecodeError, csv.Error, OSError) as e:
        raise MetadataParseError(f"{details_file}: {e}") from e

    logger.debug(f"Read {len(result)} records from {details_file}")
    return result


def parse_exif_date(value: str) -> date:
    """Parse the date portion of an EXIF 'yyyy:MM:dd HH:mm:ss' value."""
    date_part = value.strip().split(' ', 1)[0]
    if date_part == UNKNOWN_EXIF_DATE:
        return EPOCH_DATE
    return datetime.strptime(date_part, EXIF_DATE_FORMAT).date()


def get_embedded_date(image_path: Path) -> Optional[date]:
    """Read DateTimeOriginal from a JPEG with exiftool.

    Returns None when the file is not a JPEG, exiftool is missing, the tag is
    absent, or anything about the file cannot be read.
    """
    if image_path.suffix.lower() not in JPG_EXTENSIONS:
        return None

    if not exiftool_available:
        logger.debug(f"exiftool unavailable, no embedded date for {image_path}")
        return None

    try:
        # Without -d exiftool prints the raw EXIF form, e.g. 2023:05:10 14:22:01
        result = subprocess.run([
            "exiftool",
            "-q",
            "-json",
            "-DateTimeOriginal",
            str(image_path)],
            capture_output=True, text=True, check=True
        )
        tags = json.loads(result.stdout)[0]
        value = tags.get("DateTimeOriginal")
        if not value:
            logger.debug(f"No DateTimeOriginal tag in {image_path}")
            return None
        return parse_exif_date(str(value))

    except subprocess.CalledProcessError as e:
        logger.warning(f"exiftool failed for {image_path}: {e}")
    except (json.JSONDecodeError, IndexError, AttributeError) as e:
        logger.warning(f"Unreadable exiftool output for {image_path}: {e}")
    except ValueError as e:
        logger.warning(f"Invalid DateTimeOriginal in {image_path}: {e}")
    except OSError as e:
        logger.warning(f"Could not read metadata from {image_path}: {e}")

    return None
