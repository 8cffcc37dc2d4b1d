# app.py
import streamlit as st
import plotly.graph_objects as go

from config import APP_NAME, DEFAULTS, STRATEGIES, STRATEGY_LABELS
from errors import InvalidRequestError
from exporters import audit_frame, export_audit_log, export_percentile_curve, export_request
from log_utils import setup_logging
from simulation import SimulationRequest, run_simulation
from ui import app_header, inject_css, kpi_card, money, strategy_note

setup_logging()

# ------------- Page setup -------------
st.set_page_config(page_title=APP_NAME, page_icon="📈", layout="wide")
inject_css()
app_header(APP_NAME, "10,000 correlated market futures, in today's money")

with st.expander("How this works (30 seconds)"):
    st.write("""
- Stock, bond and cash returns are drawn together each year, with realistic correlation and fat right tails.
- Everything is in **today's money**: your spending stays the same number every year because returns are already net of inflation.
- We run 10,000 futures and show the median, the 25th and the 10th percentile of your balance.
- For each of those three lines we pick one real simulated future and show what the strategy did, year by year.
    """)

# ------------- Sidebar (inputs) -------------
st.sidebar.header("Money today")
initial_cash = st.sidebar.number_input(
    "Total cash savings", min_value=0, value=DEFAULTS["initial_cash"], step=1000)
initial_investments = st.sidebar.number_input(
    "Investment portfolio", min_value=0, value=DEFAULTS["initial_investments"], step=5000)
annual_spend = st.sidebar.number_input(
    "Annual retirement spending", min_value=0, value=DEFAULTS["annual_spend"], step=1000,
    help="In today's money. It is not inflated year by year because the simulation is in real terms.")
time_horizon = st.sidebar.slider("Simulation time horizon (years)", 5, 50, DEFAULTS["time_horizon"])

st.sidebar.header("Costs")
inflation_rate = st.sidebar.slider("Inflation rate (%/yr)", 0.0, 10.0, DEFAULTS["inflation_rate"], 0.1)
management_fee = st.sidebar.slider("Management fee (%/yr)", 0.0, 2.0, DEFAULTS["management_fee"], 0.05,
                                   help="Charged on stocks and bonds, not on cash.")

st.sidebar.header("Simulation")
seed = st.sidebar.number_input("Random seed (-1 = random)", value=-1)

# ------------- Strategy -------------
strategy = st.radio("Strategy", STRATEGIES, index=STRATEGIES.index(DEFAULTS["strategy"]),
                    format_func=lambda s: STRATEGY_LABELS[s], horizontal=True)
custom_stock = DEFAULTS["custom_stock_allocation"]
if strategy == "CUSTOM":
    custom_stock = st.slider("Stock allocation (%)", 0, 100, DEFAULTS["custom_stock_allocation"], 5)

request = SimulationRequest(
    initial_cash=initial_cash,
    initial_investments=initial_investments,
    annual_spend=annual_spend,
    time_horizon=time_horizon,
    inflation_rate=inflation_rate,
    management_fee=management_fee,
    custom_stock_allocation=custom_stock,
    strategy=strategy,
    seed=None if seed == -1 else int(seed),
)


@st.cache_data(show_spinner=False)
def run_cached(req_dict):
    return run_simulation(SimulationRequest(**req_dict))


try:
    with st.spinner("Running 10,000 scenarios…"):
        result = run_cached(request.to_dict())
except InvalidRequestError as exc:
    st.error(f"Please check your inputs: {exc}")
    st.stop()

# ------------- KPIs -------------
alloc = result.display_allocation
c1, c2, c3, c4 = st.columns(4)
kpi_card(c1, "Success rate", f"{result.success_rate:.1f}%", "Futures that never ran out")
kpi_card(c2, "Median final value", money(result.final_median_value), "Today's money")
kpi_card(c3, "Volatility", f"{result.volatility:.1f}%", "Average yearly swing")
kpi_card(c4, "Starting allocation",
         f"{alloc['stock']:.0%} / {alloc['bond']:.0%} / {alloc['cash']:.0%}", "Stock / bond / cash")

# ------------- Chart -------------
curve = result.to_frame()
fig = go.Figure()
fig.add_trace(go.Scatter(x=curve["year"], y=curve["average"], mode="lines", name="Average market (median)"))
fig.add_trace(go.Scatter(x=curve["year"], y=curve["below_average"], mode="lines", name="Below average (25th)",
                         line=dict(dash="dot")))
fig.add_trace(go.Scatter(x=curve["year"], y=curve["downturn"], mode="lines", name="Significant downturn (10th)",
                         line=dict(dash="dash")))
fig.update_layout(
    title="Yearly balance projection (today's money)", xaxis_title="Year", yaxis_title="Portfolio",
    hovermode="x unified", margin=dict(l=30, r=20, t=60, b=30)
)
st.plotly_chart(fig, use_container_width=True)

st.markdown("**Strategy insight:** " + strategy_note(strategy, request.weights()[0] * 100))

# ------------- Audit -------------
st.markdown("### Audit strategy log")
band_labels = {"average": "Average market", "below_average": "Below average", "downturn": "Significant downturn"}
band = st.selectbox("Which future?", list(band_labels), format_func=band_labels.get)
rows = result.audit_logs[band]
table = audit_frame(rows)
if strategy != "BUCKET":
    table = table.drop(columns=["start_cash"])
else:
    table = table.drop(columns=["start_bond", "bond_return"])
st.dataframe(table, use_container_width=True, hide_index=True)

# ------------- Export -------------
name_csv, data_csv = export_percentile_curve(result)
st.download_button("⬇️ Download CSV", data_csv, file_name=name_csv, mime="text/csv")
name_audit, data_audit = export_audit_log(rows, band)
st.download_button("⬇️ Download audit log", data_audit, file_name=name_audit, mime="text/csv")
name_req, data_req = export_request(request)
st.download_button("⬇️ Download inputs (JSON)", data_req, file_name=name_req, mime="application/json")

st.markdown("---")
st.caption("Long-run return assumptions, no taxes. A planning tool, not personal advice.")
