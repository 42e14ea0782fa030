import streamlit as st
from streamlit_folium import st_folium

import config
from analysis.encoding import render as render_selection, shown_selection
from analysis.loader import category_label
from analysis.map_builder import FoliumSurface


def _surface():
    # One map per browser session; each rerun clears and redraws its markers
    if 'map_surface' not in st.session_state:
        st.session_state['map_surface'] = FoliumSurface()
    return st.session_state['map_surface']


def render(dataset, category, year):
    st.caption("One bubble per state. Bubble size follows population; color intensity follows the selected rate relative to the highest state this year.")

    with st.expander("ℹ️ How to read this map"):
        st.markdown("""
        - **Bubble size** — square root of the state's population.
        - **Bubble color** — the darker the blue, the closer the state is to the highest rate for the selected crime and year.
        - **Click a bubble** — population, the selected rate and the unemployment rate for that state.
        """)

    surface = _surface()
    markers = render_selection(dataset, category, year, surface)
    shown = shown_selection(st.session_state, category, year, markers, surface.marker_count())

    label = category_label(category or '')
    if shown.stale:
        st.warning(f"No data for {label} in {year}; showing the previous selection "
                   f"({category_label(shown.category)}, {shown.year}).")
    elif not shown.markers:
        st.warning(f"No states to show for {label} in {year}.")

    st.subheader(f"{category_label(shown.category or '')} Rate by State, {shown.year}")
    st_folium(surface.map, width=config.MAP_WIDTH, height=config.MAP_HEIGHT,
              returned_objects=[], key='crime_map')
    return shown
