import streamlit as st

from analysis.charts import fig_category_ranking, points_frame
from analysis.loader import category_label


def render(shown):
    st.caption("The states currently on the map, ranked by the selected rate.")

    markers, category, year = shown.markers, shown.category, shown.year
    if not markers:
        st.info("Nothing to rank for this selection.")
        return
    if shown.stale:
        st.info(f"Showing the previous selection: {category_label(category)}, {year}.")

    top = max(markers, key=lambda m: m.point.value)
    k1, k2, k3 = st.columns(3)
    k1.metric("States shown", len(markers))
    k2.metric(f"Highest {category_label(category)} Rate", f"{top.point.value:,.2f}", top.point.name)
    k3.metric("Year", year)

    st.plotly_chart(fig_category_ranking(markers, category, year), use_container_width=True)

    with st.expander("📊 Full table"):
        st.dataframe(points_frame(markers), use_container_width=True, hide_index=True)
