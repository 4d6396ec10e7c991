"""
Console tables for reconciliation reports.
"""

from typing import Dict, Iterable, Optional

import pandas as pd


def monthly_frame(series: Dict[str, Dict[str, float]], months: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Build a month x metric table from {metric: {month: value}} maps.

    Args:
        series: Metric name -> month -> value
        months: Months to show (default: every month present in any metric)

    Returns:
        DataFrame indexed by month, zero-filled, with a TOTAL row
    """
    if months is None:
        months = sorted({m for values in series.values() for m in values})
    months = list(months)
    frame = pd.DataFrame(
        {name: [values.get(m, 0) for m in months] for name, values in series.items()},
        index=pd.Index(months, name="Month"),
    )
    if not frame.empty:
        frame.loc["TOTAL"] = frame.sum(numeric_only=True)
    return frame


def print_table(title: str, frame: pd.DataFrame) -> None:
    print(f"\n--- {title} ---")
    if frame.empty:
        print("  (no rows)")
        return
    print(frame.to_string())


def yen(value: float) -> str:
    return f"¥{int(round(value)):,}" if value else "-"


def print_distribution(title: str, values: Iterable[Optional[str]], empty_label: str = "未設定") -> Dict[str, int]:
    """Print value counts, most frequent first; returns them as a dict."""
    series = pd.Series([v if v else empty_label for v in values], dtype="object")
    counts = series.value_counts()
    print(f"\n--- {title} ---")
    for value, count in counts.items():
        print(f"  {value}: {count}")
    return {str(k): int(v) for k, v in counts.items()}
