import streamlit as st

STRATEGY_NOTES = {
    "BUCKET": (
        "Holds two years of spending in cash and the rest in stocks. "
        "After an up year, stock is sold to refill the cash bucket; after a down year "
        "spending comes from cash, and stock is only sold once the bucket is empty."
    ),
    "FIXED": (
        "Keeps a constant {stock}% stock / {bond}% bond mix. Every year the whole "
        "portfolio is pooled, the spending is taken out and the rest is rebalanced "
        "back to target, which sells what went up and buys what went down."
    ),
}


def inject_css():
    try:
        with open("assets/styles.css", "r", encoding="utf-8") as f:
            st.markdown(f"<style>{f.read()}</style>", unsafe_allow_html=True)
    except FileNotFoundError:
        pass


def app_header(title: str, subtitle: str = ""):
    cols = st.columns([6, 2])
    with cols[0]:
        st.markdown(f"## {title}")
        if subtitle:
            st.caption(subtitle)
    with cols[1]:
        st.markdown(
            "<div class='badge'>Monte Carlo</div> "
            "<div class='badge'>Audit log</div>",
            unsafe_allow_html=True,
        )


def money(value: float) -> str:
    if abs(value) >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if abs(value) >= 1_000:
        return f"${value / 1_000:.0f}k"
    return f"${value:,.0f}"


def kpi_card(col, caption: str, value: str, note: str = ""):
    extra = f"<div class='caption'>{note}</div>" if note else ""
    col.markdown(
        f"<div class='card'><div class='caption'>{caption}</div>"
        f"<div class='kpi'>{value}</div>{extra}</div>",
        unsafe_allow_html=True,
    )


def strategy_note(strategy: str, stock_pct: float) -> str:
    if strategy == "BUCKET":
        return STRATEGY_NOTES["BUCKET"]
    stock = round(stock_pct)
    return STRATEGY_NOTES["FIXED"].format(stock=stock, bond=100 - stock)
