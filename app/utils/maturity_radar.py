from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from app.domain.models import Dimension, Result


# --- Color interpolation helpers (kept module-level for reuse) ---
def hex_to_rgb(h: str) -> tuple[int, int, int]:
    h = h.lstrip("#")
    return (
        int(h[0:2], 16),
        int(h[2:4], 16),
        int(h[4:6], 16),
    )


def rgb_to_hex(rgb: tuple[int, int, int]) -> str:
    r, g, b = rgb
    return f"#{r:02X}{g:02X}{b:02X}"


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


# Stops follow the maturity profile bands: 0 beginner .. 100 leader
DEFAULT_STOPS: list[tuple[float, str]] = [
    (0.0, "#EF4444"),
    (25.0, "#F59E0B"),
    (50.0, "#FEE08B"),
    (75.0, "#3B82F6"),
    (100.0, "#10B981"),
]


def gradient_color(value: float, stops: list[tuple[float, str]] = DEFAULT_STOPS) -> str:
    """Piecewise-linear interpolation across hex color stops."""
    v = float(value)
    if v <= stops[0][0]:
        return stops[0][1]
    if v >= stops[-1][0]:
        return stops[-1][1]
    for i in range(len(stops) - 1):
        v0, c0 = stops[i]
        v1, c1 = stops[i + 1]
        if v0 <= v <= v1:
            t = 0.0 if v1 == v0 else (v - v0) / (v1 - v0)
            r0, g0, b0 = hex_to_rgb(c0)
            r1, g1, b1 = hex_to_rgb(c1)
            r = int(round(lerp(r0, r1, t)))
            g = int(round(lerp(g0, g1, t)))
            b = int(round(lerp(b0, b1, t)))
            return rgb_to_hex((r, g, b))
    return stops[-1][1]


def radar_frame(result: Result) -> pd.DataFrame:
    """Long frame with one row per pillar: Dimension, Pillar, DimensionPct, PillarPct."""
    rows = [
        {
            "Dimension": dim.dimension_name,
            "Pillar": pillar.pillar_name,
            "DimensionPct": float(dim.percentage),
            "PillarPct": float(pillar.percentage),
        }
        for dim in result.dimension_scores
        for pillar in dim.pillar_scores
    ]
    return pd.DataFrame(rows, columns=["Dimension", "Pillar", "DimensionPct", "PillarPct"])


def _add_pillar_bar(fig, *, theta_left, theta_right, r0, r1, color, pillar_name, pillar_pct):
    fig.add_trace(
        go.Scatterpolar(
            theta=[theta_left, theta_right, theta_right, theta_left, theta_left],
            r=[r0, r0, r1, r1, r0],
            mode="lines",
            line=dict(width=0.5, color=color),
            fill="toself",
            fillcolor=color,
            name="",
            showlegend=False,
            hoverinfo="skip",
        )
    )
    # invisible hover target at center
    theta_mid = (theta_left + theta_right) / 2.0
    r_mid = (r0 + r1) / 2.0
    fig.add_trace(
        go.Scatterpolar(
            theta=[theta_mid],
            r=[r_mid],
            mode="markers",
            marker=dict(size=28, color="rgba(0,0,0,0)"),
            name="",
            showlegend=False,
            hovertemplate=f"{pillar_name} - {pillar_pct:.0f}%<extra></extra>",
        )
    )


def make_maturity_radar(
    result: Result,
    dimensions: list[Dimension] | None = None,
    title: str | None = None,
    bar_base: float = 107.0,  # start of mini bars, just beyond the 100 ring
    bar_total_height: float = 16.0,  # visual height representing 100%
    bar_width_deg: float = 6.0,
    bar_gap_deg: float = 2.0,
) -> go.Figure:
    """
    Radar chart with one spoke per dimension at its percentage, plus one mini bar
    per pillar at each spoke tip.

    ``dimensions`` fixes the spoke order; when omitted the result order is used.
    """
    data = radar_frame(result)
    dim_summary = data.groupby("Dimension", as_index=False, sort=False).agg(
        mean_score=("DimensionPct", "first")
    )

    if dimensions is None:
        dims = list(pd.unique(data["Dimension"]))
    else:
        dims = [d.name for d in dimensions]
        unknown = set(dims) - set(dim_summary["Dimension"])
        if unknown:
            raise ValueError(f"dimensions include entries missing from the result: {sorted(unknown)}")

    # Equally spaced angles (degrees), starting at 12 o'clock and clockwise in layout
    angles = np.linspace(0.0, 360.0, len(dims), endpoint=False)
    angle_map = pd.DataFrame({"Dimension": dims, "theta": angles})

    dim_summary = dim_summary.merge(angle_map, on="Dimension", how="right")
    pillar_summary = data.merge(angle_map, on="Dimension", how="left")

    dim_summary["mean_color"] = dim_summary["mean_score"].apply(gradient_color)
    pillar_summary["bar_color"] = pillar_summary["PillarPct"].apply(gradient_color)

    fig = go.Figure()

    r_vals = dim_summary["mean_score"].tolist()
    theta_vals = dim_summary["theta"].tolist()
    if len(r_vals) >= 1:
        fig.add_trace(
            go.Scatterpolar(
                r=r_vals + [r_vals[0]],
                theta=theta_vals + [theta_vals[0]],
                mode="lines",
                line=dict(color="#666666", width=1.5),
                fill="toself",
                fillcolor="rgba(0,0,0,0.08)",
                name="Dimension score (%)",
                hoverinfo="skip",
            )
        )

    fig.add_trace(
        go.Scatterpolar(
            r=dim_summary["mean_score"],
            theta=dim_summary["theta"],
            mode="markers+text",
            marker=dict(size=10, color=dim_summary["mean_color"]),
            text=[f"{m:.0f}%" for m in dim_summary["mean_score"]],
            textposition="top center",
            name="Score by Dimension",
            hovertemplate="<b>%{customdata[0]}</b><br>Score: %{customdata[1]:.0f}%<extra></extra>",
            customdata=np.stack([dim_summary["Dimension"], dim_summary["mean_score"]], axis=1),
        )
    )

    for _, drow in dim_summary.iterrows():
        dname = drow["Dimension"]
        theta_center = float(drow["theta"])
        # pillars keep catalog order
        ps = pillar_summary[pillar_summary["Dimension"] == dname]
        k = int(ps.shape[0])
        if k == 0:
            continue

        total_span = k * bar_width_deg + (k - 1) * bar_gap_deg
        start = theta_center - total_span / 2.0

        for idx, (_, prow) in enumerate(ps.iterrows()):
            theta_left = start + idx * (bar_width_deg + bar_gap_deg)
            pillar_pct = float(prow["PillarPct"])
            height = max(0.0, float(bar_total_height) * pillar_pct / 100.0)
            _add_pillar_bar(
                fig,
                theta_left=theta_left,
                theta_right=theta_left + bar_width_deg,
                r0=float(bar_base),
                r1=float(bar_base) + height,
                color=prow["bar_color"],
                pillar_name=str(prow["Pillar"]),
                pillar_pct=pillar_pct,
            )

    if title is None and len(dim_summary):
        lowest = dim_summary.sort_values("mean_score", kind="stable").iloc[0]
        title = f"{lowest['Dimension']} is the lowest, focus improvement efforts there"

    fig.update_layout(
        title=dict(
            text=title or "Digital Maturity Overview",
            x=0.5,
            xanchor="center",
            font=dict(family="Helvetica, Arial, sans-serif", size=18),
        ),
        showlegend=True,
        legend=dict(orientation="h", x=1, y=-0.1, xanchor="right", yanchor="top"),
        margin=dict(l=40, r=40, t=80, b=80),
        polar=dict(
            radialaxis=dict(
                range=[0, float(bar_base + bar_total_height) + 2.0],
                showticklabels=True,
                ticks="outside",
                tickfont=dict(size=10),
                gridcolor="#BFBFBF",
                gridwidth=0.5,
                tickvals=[0, 25, 50, 75, 100],
                ticktext=["0", "25", "50", "75", "100"],
            ),
            angularaxis=dict(
                rotation=90,  # 12 o'clock
                direction="clockwise",
                tickmode="array",
                tickvals=dim_summary["theta"],
                ticktext=dim_summary["Dimension"],
                tickfont=dict(size=14),
            ),
        ),
        template="plotly_white",
    )
    fig.update_layout(height=560)
    return fig
