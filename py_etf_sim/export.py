from typing import List

import pandas as pd

from .summary import EtfSimSummary
from .types import SimulationRow

ROW_COLUMNS = [
    'date', 'contribution', 'fees', 'portfolio_value',
    'symbol', 'units', 'price_ccy', 'currency', 'fx_rate',
    'price_base', 'value', 'target_weight', 'drift'
]

YEAR_COLUMNS = [
    'year', 'contrib', 'fees', 'end_value', 'end_date',
    'cum_contrib_to_date', 'unrealized_pl', 'performance'
]


def rows_to_frame(rows: List[SimulationRow]) -> pd.DataFrame:
    """
    One line per month and component. Months where nothing could be
    valued keep a single line with empty position columns.
    """
    records = []
    for row in rows:
        month = row.to_dict()
        head = {k: month[k] for k in ('date', 'contribution', 'fees', 'portfolio_value')}
        if not month['positions']:
            records.append(head)
            continue
        for pos in month['positions']:
            records.append({**head, **pos})
    return pd.DataFrame.from_records(records, columns=ROW_COLUMNS)


def summary_to_frame(summary: EtfSimSummary) -> pd.DataFrame:
    records = []
    for bucket in summary.by_year.values():
        records.append({
            'year': bucket.year,
            'contrib': float(bucket.contrib),
            'fees': float(bucket.fees),
            'end_value': float(bucket.end_value),
            'end_date': bucket.end_date.isoformat() if bucket.end_date else None,
            'cum_contrib_to_date': float(bucket.cum_contrib_to_date),
            'unrealized_pl': float(bucket.unrealized_pl),
            'performance': float(bucket.performance),
        })
    return pd.DataFrame.from_records(records, columns=YEAR_COLUMNS)


def write_csv(df: pd.DataFrame, path: str, sep: str = ";") -> None:
    df.to_csv(path, sep=sep, index=False)
