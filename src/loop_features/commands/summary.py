"""Handler for the 'summary' command: per-run statistics of the dataset."""
from __future__ import annotations

from pathlib import Path

import pandas as pd
from rich.console import Console
from rich.table import Table

from ..exceptions import DatasetUnavailableError
from ..models import FEATURE_COLUMNS

console = Console()


def load_dataset(path: Path) -> pd.DataFrame:
    """Load the dataset; rows whose names contain commas do not fit the layout and are skipped."""
    if not path.exists():
        raise DatasetUnavailableError(f"Dataset {path} does not exist")
    try:
        df = pd.read_csv(path, on_bad_lines="skip")
    except pd.errors.EmptyDataError as exc:
        raise DatasetUnavailableError(f"Dataset {path} is empty") from exc
    missing = [c for c in FEATURE_COLUMNS if c not in df.columns]
    if missing:
        raise DatasetUnavailableError(f"Dataset {path} is missing columns: {', '.join(missing)}")
    return df


def summarize_runs(df: pd.DataFrame) -> pd.DataFrame:
    """One row per CodeID: loop and function counts plus trip-count statistics."""
    known = df["trip_count"] > 0
    grouped = df.assign(known_trip=known).groupby("CodeID")
    return pd.DataFrame({
        "loops": grouped.size(),
        "functions": grouped["Function"].nunique(),
        "max_depth": grouped["loop_depth"].max(),
        "known_trip_counts": grouped["known_trip"].sum().astype(int),
        "mean_trip_count": grouped["trip_count"].apply(lambda s: s[s > 0].mean()),
    }).reset_index()


class SummaryHandler:
    def run(self, dataset_path: Path) -> pd.DataFrame:
        df = load_dataset(dataset_path)
        if df.empty:
            console.print(f"[yellow]No rows in {dataset_path}[/yellow]")
            return pd.DataFrame()
        summary = summarize_runs(df)

        table = Table(title=f"Runs in {dataset_path}")
        for column in summary.columns:
            table.add_column(str(column), justify="right")
        for _, row in summary.iterrows():
            mean = row["mean_trip_count"]
            table.add_row(
                str(int(row["CodeID"])),
                str(int(row["loops"])),
                str(int(row["functions"])),
                str(int(row["max_depth"])),
                str(int(row["known_trip_counts"])),
                "-" if pd.isna(mean) else f"{mean:.1f}",
            )
        console.print(table)
        duplicated = int(df.duplicated(subset=["CodeID", "Function", "LoopHeader"]).sum())
        if duplicated:
            console.print(f"[yellow]{duplicated} rows share a (CodeID, Function, LoopHeader) key[/yellow]")
        return summary
