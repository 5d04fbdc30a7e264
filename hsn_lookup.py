import math

import pandas as pd # type: ignore
import structlog
from rapidfuzz import process, fuzz # type: ignore

from config import settings

logger = structlog.get_logger(__name__)


def _code_text(value) -> str:
    # codes typed as numbers in a sheet come back as 996331.0
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class HSNLookup:
    def __init__(self, csv_path: str = None, min_score: float = None, records=None):
        """
        Load HSN/SAC code dataset (CSV must have columns: hsn_code, Description, rate).
        Pass `records` instead of a path to build it from in-memory rows.
        """
        if records is not None:
            df = pd.DataFrame(list(records))
            source = "records"
        elif csv_path is not None:
            # every column as text so codes keep leading zeros
            df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
            source = str(csv_path)
        else:
            raise ValueError("Either csv_path or records is required")
        self.df = self._normalize(df)
        self.min_score = settings.HSN_MIN_SCORE if min_score is None else min_score
        logger.info("HSN data loaded", source=source, rows=len(self.df))

    @classmethod
    def from_records(cls, records, min_score: float = None):
        """Build a lookup from in-memory rows, e.g. custom item types kept elsewhere."""
        return cls(records=records, min_score=min_score)

    @classmethod
    def default(cls):
        """Bundled hotel SAC table (or HSN_DATA_PATH from the environment)."""
        return cls(settings.HSN_DATA_PATH)

    @staticmethod
    def _normalize(df: pd.DataFrame) -> pd.DataFrame:
        # normalize columns (case-insensitive)
        df.columns = [str(c).strip().lower() for c in df.columns]
        if "hsn" in df.columns and "hsn_code" not in df.columns:
            df = df.rename(columns={"hsn": "hsn_code"})
        if "description" not in df.columns:
            raise ValueError("CSV must have a Description column")
        if "rate" not in df.columns:
            raise ValueError("CSV must have a Rate column")
        if "hsn_code" not in df.columns:
            df["hsn_code"] = ""
        df["hsn_code"] = df["hsn_code"].map(_code_text).astype(object)
        df["description"] = df["description"].fillna("").astype(str)
        df["rate"] = pd.to_numeric(df["rate"], errors="coerce").fillna(0.0)
        return df.reset_index(drop=True)

    def suggest(self, description: str, limit: int = 1):
        """Suggest closest HSN codes for an item description."""
        if not description or not description.strip() or self.df.empty:
            return []
        choices = self.df['description'].tolist()
        matches = process.extract(description, choices, scorer=fuzz.WRatio, limit=limit)
        results = []
        for match, score, idx in matches:
            row = self.df.iloc[idx]
            results.append({
                "hsn_code": row['hsn_code'],
                "description": row['description'],
                "rate": float(row['rate']),
                "score": score
            })
        return results

    def best_match(self, description: str):
        """Top suggestion if it clears min_score, else None."""
        sugg = self.suggest(description, limit=1)
        if sugg and sugg[0]["score"] >= self.min_score:
            return sugg[0]
        return None

    def rate_for(self, description: str, default: float = None) -> float:
        match = self.best_match(description)
        if match is None:
            rate = settings.DEFAULT_GST_RATE if default is None else default
            logger.debug("No HSN match, using default rate", description=description, rate=rate)
            return rate
        return match["rate"]
