"""Plotly figures for the dashboard pages.

Each function takes the plain series produced by :mod:`budget_pay.analytics`
or :mod:`budget_pay.budgeting` and returns a
``plotly.graph_objects.Figure``; :func:`to_html` embeds one in a template.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

import plotly.graph_objects as go

from .colors import STATUS_COLORS, UI_COLORS, color_for, with_opacity


def _empty(title: str) -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display" if not title else f"{title}: no data to display")
    return fig


def _layout(fig: go.Figure, title: str, currency: str) -> go.Figure:
    fig.update_layout(
        title=title,
        margin=dict(l=40, r=20, t=50, b=40),
        height=320,
        yaxis_tickprefix=currency,
        plot_bgcolor="white",
    )
    return fig


def allocation_chart(categories: Sequence, allocation: Dict, currency: str = "₹") -> go.Figure:
    """Donut of the period budget split across categories."""
    rows = [(c, allocation.get(c.id, 0.0)) for c in categories if allocation.get(c.id, 0.0) > 0]
    if not rows:
        return _empty("Budget Allocation")
    fig = go.Figure(go.Pie(
        labels=[c.name for c, _ in rows],
        values=[round(v, 2) for _, v in rows],
        marker=dict(colors=[c.color or color_for(c.id, c.name) for c, _ in rows]),
        hole=0.45,
        hovertemplate=f"%{{label}}: {currency}%{{value:,.2f}}<extra></extra>",
    ))
    fig.update_layout(title="Budget Allocation", margin=dict(l=20, r=20, t=50, b=20), height=320)
    return fig


def spending_chart(series: Sequence[Tuple[str, float]], currency: str = "₹") -> go.Figure:
    """Bar chart of spend per day over the last week."""
    if not series or not any(v for _, v in series):
        return _empty("Daily Spending")
    fig = go.Figure(go.Bar(
        x=[label for label, _ in series],
        y=[value for _, value in series],
        marker_color=UI_COLORS["primary"],
    ))
    return _layout(fig, "Daily Spending (Last 7 Days)", currency)


def trends_chart(series: Sequence[Tuple[str, float]], period_label: str, currency: str = "₹") -> go.Figure:
    if not series:
        return _empty("Spending Trends")
    fig = go.Figure(go.Scatter(
        x=[label for label, _ in series],
        y=[value for _, value in series],
        mode="lines+markers",
        line=dict(color=UI_COLORS["info"], width=2),
    ))
    return _layout(fig, f"{period_label} Spending Trends", currency)


def category_health_chart(health: Dict, currency: str = "₹", title: Optional[str] = None) -> go.Figure:
    """Allocated versus spent per category, spent bars coloured by status."""
    if not health:
        return _empty("Category Health")
    names = list(health.keys())
    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Allocated",
        x=names,
        y=[round(h.allocated, 2) for h in health.values()],
        marker_color=with_opacity(UI_COLORS["primary"], 0.25),
    ))
    fig.add_trace(go.Bar(
        name="Spent",
        x=names,
        y=[round(h.spent, 2) for h in health.values()],
        marker_color=[STATUS_COLORS.get(h.status, UI_COLORS["secondary"]) for h in health.values()],
    ))
    fig.update_layout(barmode="group")
    return _layout(fig, title or "Allocation vs. Spend", currency)


def to_html(fig: go.Figure) -> str:
    return fig.to_html(full_html=False, include_plotlyjs="cdn", config={"displayModeBar": False})
