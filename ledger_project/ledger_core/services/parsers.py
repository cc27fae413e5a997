import csv
import datetime
import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from typing import Dict, List

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..exceptions import ImportRejected

logger = logging.getLogger(__name__)

# ----------------------------------------
# Format parsers: raw bytes -> list of row dicts keyed by the
# file's own header text. Nothing here knows about entity types.
# ----------------------------------------


def _cell(value):
    """Normalize one spreadsheet cell into a JSON-safe scalar."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def parse_xlsx(content: bytes) -> List[Dict]:
    """First worksheet, first row as headers; fully blank rows are skipped."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportRejected("File is empty or could not be parsed") from exc

    try:
        sheet = wb.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        # unnamed columns are dropped
        columns = [
            (idx, str(name).strip())
            for idx, name in enumerate(header)
            if name is not None and str(name).strip()
        ]
        records = []
        for values in rows:
            record = {}
            for idx, name in columns:
                record[name] = _cell(values[idx]) if idx < len(values) else None
            if any(v is not None for v in record.values()):
                records.append(record)
        return records
    finally:
        wb.close()


def parse_csv(content: bytes) -> List[Dict]:
    # utf-8-sig strips the BOM spreadsheet tools put on CSV exports
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")
    reader = csv.DictReader(io.StringIO(text))
    records = []
    for raw in reader:
        record = {
            str(k).strip(): _cell(v)
            for k, v in raw.items()
            if k is not None and str(k).strip()
        }
        if any(v is not None for v in record.values()):
            records.append(record)
    return records


def parse_spreadsheet(content: bytes, file_name: str = "") -> List[Dict]:
    """Dispatch on extension; anything that is not .csv is read as a workbook."""
    if not content:
        raise ImportRejected("File is empty or could not be parsed")
    if file_name.lower().endswith(".csv"):
        rows = parse_csv(content)
    else:
        rows = parse_xlsx(content)
    logger.info("Parsed %s: %d rows", file_name or "<upload>", len(rows))
    return rows


# ---------------- XML ----------------


def _local(tag):
    # "{namespace}Name" -> "Name"
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def parse_xml(content: bytes) -> ET.Element:
    if not content or not content.strip():
        raise ImportRejected("Invalid XML format: document is empty")
    try:
        return ET.fromstring(content)
    except ET.ParseError as exc:
        raise ImportRejected(f"Invalid XML format: {exc}") from exc


def element_to_record(element: ET.Element) -> Dict:
    """
    Flatten a record element into {name: text}. Attributes are kept too,
    so <Customer NAME="x"/> and <Customer><NAME>x</NAME></Customer> read alike.
    Child elements win over attributes of the same name.
    """
    record = {}
    for key, value in element.attrib.items():
        record[_local(key)] = value.strip()
    for child in element:
        text = (child.text or "").strip()
        if text:
            record[_local(child.tag)] = text
    return record


def find_records(root: ET.Element, containers, items) -> List[ET.Element]:
    """
    Locate the repeated record elements of an export:
      <Customers><Customer/>...</Customers>   (root or nested container)
      <ENVELOPE><BODY><DATA><TALLYMESSAGE/>...  (Tally envelope)
    Returns [] when the document has neither shape.
    """
    containers = {c.lower() for c in containers}
    items = {i.lower() for i in items}

    if _local(root.tag).lower() in containers:
        return [el for el in root if _local(el.tag).lower() in items]

    for el in root.iter():
        if _local(el.tag).lower() in containers:
            return [child for child in el if _local(child.tag).lower() in items]

    if _local(root.tag).lower() == "envelope":
        records = []
        for msg in root.iter():
            if _local(msg.tag).lower() != "tallymessage":
                continue
            # <TALLYMESSAGE><LEDGER NAME="..">...</LEDGER></TALLYMESSAGE>
            inner = list(msg)
            if len(inner) == 1 and (len(inner[0]) or inner[0].attrib):
                records.append(inner[0])
            else:
                records.append(msg)
        return records
    return []
