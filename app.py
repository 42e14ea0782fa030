"""
State Crime Bubble Map — Streamlit entry point.

Run:  streamlit run app.py
"""

import logging

import streamlit as st

import config
from analysis.errors import LoadError
from analysis.loader import category_label, load
from tabs import tab_map, tab_ranking

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bubblemap.app")

st.set_page_config(page_title="State Crime Bubble Map", layout="wide")
st.title("State Crime Bubble Map")


@st.cache_resource(show_spinner=False)
def load_dataset():
    return load(config.STATS_URL, config.GEO_URL, categories=config.CATEGORY_SCHEMA)


# ── Load ──
try:
    with st.spinner("Loading crime statistics and state boundaries…"):
        dataset = load_dataset()
except LoadError as e:
    logger.error(f"Error fetching data: {e}")
    st.error(f"Could not load the map data: {e}")
    st.stop()

# ── Selectors ──
col1, col2 = st.columns(2)
with col1:
    category = st.selectbox("Crime", dataset.categories,
                            format_func=category_label, key="crimeSelector")
with col2:
    year = st.selectbox("Year", dataset.years,
                        index=len(dataset.years) - 1 if dataset.years else None,
                        key="yearSelector")

map_tab, ranking_tab = st.tabs(["🗺️ Map", "📊 Ranking"])
with map_tab:
    shown = tab_map.render(dataset, category, year)
with ranking_tab:
    tab_ranking.render(shown)
