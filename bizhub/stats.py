# bizhub/stats.py
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from . import db
from .utils import month_bounds

logger = logging.getLogger("bizhub.stats")

SALES_COLUMNS = ['platform', 'amount', 'sales_count', 'sale_date']
TRAFFIC_COLUMNS = ['clicks', 'optins', 'cost', 'traffic_date']
EXPENSE_COLUMNS = ['amount', 'expense_date']


def _frame(rows, columns: List[str], date_column: str) -> pd.DataFrame:
    df = pd.DataFrame([dict(r) for r in rows], columns=columns)
    df[date_column] = pd.to_datetime(df[date_column], errors='coerce')
    return df.dropna(subset=[date_column])


def _between(df: pd.DataFrame, column: str, start: date, end: Optional[date] = None) -> pd.DataFrame:
    mask = df[column] >= pd.Timestamp(start)
    if end is not None:
        mask &= df[column] <= pd.Timestamp(end)
    return df[mask]


class DashboardStats:
    """Per-project Affiliate HQ dashboard numbers"""

    def __init__(self, sales_df: pd.DataFrame, traffic_df: pd.DataFrame, expenses_df: pd.DataFrame):
        self.sales = sales_df
        self.traffic = traffic_df
        self.expenses = expenses_df

    @classmethod
    def load(cls, project_id: int) -> 'DashboardStats':
        sales = db.query_db(
            "SELECT platform, amount, sales_count, sale_date FROM sales WHERE project_id=?", (project_id,)
        )
        traffic = db.query_db(
            "SELECT clicks, optins, cost, traffic_date FROM traffic WHERE project_id=?", (project_id,)
        )
        expenses = db.query_db(
            "SELECT amount, expense_date FROM expenses WHERE project_id=?", (project_id,)
        )
        return cls(
            _frame(sales, SALES_COLUMNS, 'sale_date'),
            _frame(traffic, TRAFFIC_COLUMNS, 'traffic_date'),
            _frame(expenses, EXPENSE_COLUMNS, 'expense_date'),
        )

    def _sales_totals(self, start: date, end: Optional[date]) -> Dict[str, Any]:
        df = _between(self.sales, 'sale_date', start, end)
        return {
            'revenue': float(df['amount'].sum()),
            'sales': int(df['sales_count'].sum()),
        }

    def _expense_total(self, start: date, end: Optional[date]) -> float:
        return float(_between(self.expenses, 'expense_date', start, end)['amount'].sum())

    def period(self, start: date, end: date) -> Dict[str, Any]:
        totals = self._sales_totals(start, end)
        traffic = _between(self.traffic, 'traffic_date', start, end)
        expenses = self._expense_total(start, end)
        return {
            'revenue': totals['revenue'],
            'sales': totals['sales'],
            'clicks': int(traffic['clicks'].sum()),
            'optins': int(traffic['optins'].sum()),
            'traffic_cost': float(traffic['cost'].sum()),
            'expenses': expenses,
            'profit': totals['revenue'] - expenses,
        }

    def previous_period(self, start: date, end: date) -> Dict[str, Any]:
        """Same number of days immediately before `start`"""
        days = max(1, (end - start).days + 1)
        return self._sales_totals(start - timedelta(days=days), start - timedelta(days=1))

    def month_to_date(self, today: date) -> Dict[str, Any]:
        month_start, month_end = month_bounds(today.year, today.month)
        totals = self._sales_totals(month_start, month_end)
        expenses = self._expense_total(month_start, month_end)
        return {
            'revenue': totals['revenue'],
            'sales': totals['sales'],
            'expenses': expenses,
            'profit': totals['revenue'] - expenses,
        }

    def top_platforms(self, start: date, end: date, limit: int = 5) -> List[Dict[str, Any]]:
        df = _between(self.sales, 'sale_date', start, end)
        if df.empty:
            return []
        grouped = (df.groupby('platform')[['amount', 'sales_count']].sum()
                   .sort_values('amount', ascending=False)
                   .head(limit))
        return [
            {'platform': platform, 'revenue': float(row['amount']), 'sales': int(row['sales_count'])}
            for platform, row in grouped.iterrows()
        ]

    def daily_revenue(self, today: date, days: int = 7) -> List[Dict[str, Any]]:
        df = _between(self.sales, 'sale_date', today - timedelta(days=days - 1), today)
        if df.empty:
            return []
        grouped = df.groupby(df['sale_date'].dt.date)['amount'].sum().sort_index()
        return [{'date': d.isoformat(), 'revenue': float(v)} for d, v in grouped.items()]

    def summary(self, start: date, end: date, today: date) -> Dict[str, Any]:
        return {
            'period': self.period(start, end),
            'previous': self.previous_period(start, end),
            'month': self.month_to_date(today),
            'top_platforms': self.top_platforms(start, end),
            'daily_revenue': self.daily_revenue(today),
        }


def current_goal(project_id: int, today: date) -> Optional[Dict[str, Any]]:
    row = db.query_db(
        "SELECT * FROM goals WHERE project_id=? AND month=? AND year=?",
        (project_id, today.month, today.year), one=True
    )
    return dict(row) if row else None


def dashboard(project_id: int, start: Optional[date] = None, end: Optional[date] = None,
              today: Optional[date] = None) -> Dict[str, Any]:
    """Dashboard payload; the period defaults to today only"""
    today = today or date.today()
    start = start or today
    end = end or today
    if end < start:
        start, end = end, start

    result = DashboardStats.load(project_id).summary(start, end, today)
    result['goal'] = current_goal(project_id, today)
    logger.debug(f"Dashboard for project {project_id}: {start} - {end}")
    return result
