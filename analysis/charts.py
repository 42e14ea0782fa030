import pandas as pd
import plotly.express as px

from analysis.loader import category_label


def points_frame(markers):
    """One row per drawn marker, for tables and charts."""
    return pd.DataFrame([{
        'State': m.point.name,
        'Code': m.point.state_abbr,
        'Rate': m.point.value,
        'Score': m.score,
        'Population': m.point.population,
        'Unemployment Rate (%)': m.point.unemployment_rate,
    } for m in markers], columns=['State', 'Code', 'Rate', 'Score',
                                  'Population', 'Unemployment Rate (%)'])


# ── Charts ────────────────────────────────────────────────────────────────────

def fig_category_ranking(markers, category, year):
    ranked = points_frame(markers).sort_values('Rate', ascending=False)
    label = f"{category_label(category)} Rate"
    fig = px.bar(ranked, x='Rate', y='State', orientation='h',
                 color='Score', color_continuous_scale='Blues', range_color=(0, 1),
                 hover_data={'Code': True, 'Population': ':,', 'Score': ':.2f'},
                 labels={'Rate': label}, title=f"{label} by State, {year}")
    fig.update_layout(yaxis={'categoryorder': 'total ascending'},
                      coloraxis_showscale=False,
                      height=max(380, 18 * len(ranked)))
    return fig
