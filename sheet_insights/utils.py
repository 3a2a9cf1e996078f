"""
Small utilities: spreadsheet loader and JSON-safe conversion.

Rationale:
- Limit dataset sizes passed around to keep runtime predictable.
- Read the first sheet of an upload into a DataFrame with a row cap.
- Convert rows to plain records with native Python types; empty cells are
  left out so records stay sparse.
"""

import json
import math
import logging
from typing import Any, BinaryIO, Dict, List

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Maximum rows to load (keeps memory/time bounded).
ROW_LIMIT = 5000


def load_dataframe(filename: str, stream: BinaryIO) -> pd.DataFrame:
    """
    Read an uploaded spreadsheet into a DataFrame.
    - .csv via read_csv, legacy .xls via xlrd, anything else as a workbook
      (first sheet only)
    - limit rows to ROW_LIMIT
    """
    name = (filename or "").lower()
    if name.endswith(".csv"):
        df = pd.read_csv(stream)
    elif name.endswith(".xls"):
        df = pd.read_excel(stream, sheet_name=0, engine="xlrd")
    else:
        df = pd.read_excel(stream, sheet_name=0)
    logger.info(f"Parsed {filename} with {len(df)} rows and {len(df.columns)} columns")

    if len(df) > ROW_LIMIT:
        df = df.head(ROW_LIMIT)
        logger.info(f"Truncated to {ROW_LIMIT} rows")
    return df


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    try:
        return value is pd.NaT or bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_json(obj):
    """
    Convert pandas/numpy types to Python native types.
    Rationale: ensure rows are JSON serializable for the prompt and the API.
    """
    if isinstance(obj, (int, float, str, bool)) or obj is None:
        return obj
    if isinstance(obj, (np.integer, np.floating, np.bool_)):
        return obj.item()
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): safe_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [safe_json(x) for x in obj]
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Turn a DataFrame into ordered row records, skipping empty cells."""
    rows = []
    for record in df.to_dict(orient="records"):
        rows.append({
            str(column): safe_json(value)
            for column, value in record.items()
            if not _is_missing(value)
        })
    return rows
