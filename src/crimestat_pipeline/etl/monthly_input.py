"""
Reads already-parsed État 4001 monthly data from a long-format CSV:

    year, month, index, category_label, subdivision_code, count[, metropole_total]

and groups it into one MonthlyFile per (year, month).
"""
from pathlib import Path

import pandas as pd

from src.crimestat_pipeline.core.logging import get_logger
from src.crimestat_pipeline.etl.subdivisions import is_valid_subdivision_code, normalize_subdivision_code
from src.crimestat_pipeline.schemas.records import MonthlyFile, MonthlyRow

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("year", "month", "index", "category_label", "subdivision_code", "count")


def read_monthly_csv(path: str | Path) -> tuple[list[MonthlyFile], list[str]]:
    path = Path(path)
    warnings: list[str] = []

    df = pd.read_csv(path, dtype={"subdivision_code": str, "category_label": str})

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Monthly CSV missing columns: {', '.join(missing)}")

    df = df.dropna(subset=["year", "month", "index", "subdivision_code"])
    df["category_label"] = df["category_label"].fillna("")
    df["count"] = pd.to_numeric(df["count"], errors="coerce").fillna(0).astype(int)
    df["subdivision_code"] = df["subdivision_code"].map(normalize_subdivision_code)

    valid = df["subdivision_code"].map(is_valid_subdivision_code)
    if not valid.all():
        bad = sorted(df.loc[~valid, "subdivision_code"].unique())
        warnings.append(f"Dropped {int((~valid).sum())} rows with invalid subdivision codes: {', '.join(bad)}")
        logger.warning(f"Invalid subdivision codes in {path.name}: {', '.join(bad)}")
        df = df[valid]

    has_total = "metropole_total" in df.columns
    files: list[MonthlyFile] = []

    for (year, month), month_df in df.groupby(["year", "month"], sort=True):
        rows: list[MonthlyRow] = []
        for index, row_df in month_df.groupby("index", sort=True):
            counts = (
                row_df.groupby("subdivision_code")["count"].sum().astype(int).to_dict()
            )
            total = 0
            if has_total:
                totals = pd.to_numeric(row_df["metropole_total"], errors="coerce").dropna()
                total = int(totals.iloc[0]) if not totals.empty else 0
            rows.append(
                MonthlyRow(
                    source_index=int(index),
                    category_label=str(row_df["category_label"].iloc[0]),
                    metropolitan_total=total,
                    counts_by_subdivision={str(k): int(v) for k, v in counts.items()},
                )
            )

        files.append(
            MonthlyFile(
                rows=rows,
                year=int(year),
                month=int(month),
                source=f"{path.name}#{int(year)}-{int(month):02d}",
            )
        )

    logger.info(f"Read {len(files)} monthly snapshots ({len(df)} rows) from {path}")
    return files, warnings
