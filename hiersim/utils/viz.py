import plotly.express as px
import pandas as pd

def export_miss_rates(levels, path: str):
    """Writes an HTML bar chart of hits and misses per enabled cache level."""
    rows = [lv for lv in levels if lv.get('enabled') and lv.get('references')]
    if not rows:
        with open(path, "w") as f:
            f.write("<h1>Cache Statistics</h1><p>No data to display.</p>")
        return

    df = pd.DataFrame(rows)
    df['hits'] = df['references'] - df['misses']
    long_df = df.melt(
        id_vars=['level', 'miss_rate', 'avg_access_time'],
        value_vars=['hits', 'misses'],
        var_name='outcome',
        value_name='count'
    )

    fig = px.bar(
        long_df,
        x="level",
        y="count",
        color="outcome",
        hover_data=['miss_rate', 'avg_access_time'],
        title="Cache Hierarchy Hits and Misses",
        labels={"level": "Cache Level", "count": "References", "outcome": "Outcome"},
        color_discrete_map={"hits": "#2ca02c", "misses": "#d62728"}
    )
    fig.update_layout(
        barmode="stack",
        font=dict(family="Courier New, monospace", size=12),
        legend_title="Outcome"
    )

    fig.write_html(path, include_plotlyjs="cdn", full_html=True)

def export_stats_ascii(levels):
    rows = [lv for lv in levels if lv.get('enabled')]
    if not rows:
        return "No cache levels enabled."

    chart = ""
    chart += "Cache Miss Rates (ASCII)\n"
    chart += "" + ("-" * 70) + "\n"

    for lv in rows:
        filled = int(round(lv['miss_rate'] * 50))
        bar = "#" * filled + "-" * (50 - filled)
        chart += f"{lv['level']:>8} |{bar}| {lv['miss_rate']:.2%}\n"

    chart += "" + ("-" * 70) + "\n"
    return chart
