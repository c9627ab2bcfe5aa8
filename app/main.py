import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from datetime import datetime

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from finboard.config import get_settings
from finboard.domain import AssetType, CategoryType, TransactionType, VARIABLE_ASSET_TYPES
from finboard.errors import LedgerValidationError
from finboard.events import EventBus, LEDGER_CHANGED, MARKET_UPDATED, log_event_handler
from finboard.formatters import format_currency, format_date, format_percentage
from finboard.logconf import configure_logging
from finboard.market import MarketCache, MarketFeed, change_percent, rank_top_movers
from finboard.services import DashboardService
from finboard.store import LedgerStore

settings = get_settings()
st.set_page_config(page_title="Finboard", layout="wide")

if "service" not in st.session_state:
    configure_logging(settings.log_level, settings.json_logs)
    bus = EventBus()
    bus.subscribe(LEDGER_CHANGED, log_event_handler)
    bus.subscribe(MARKET_UPDATED, log_event_handler)
    store = LedgerStore.from_seed(settings.seed_path, bus=bus)
    st.session_state.feed = MarketFeed()
    st.session_state.service = DashboardService(store, MarketCache(bus))
    asyncio.run(st.session_state.service.refresh_prices(st.session_state.feed))

service: DashboardService = st.session_state.service
feed: MarketFeed = st.session_state.feed
store = service.store

if service.unpriced_tickers():
    asyncio.run(service.refresh_prices(feed))


def account_name(account_id):
    acc = store.get("account", account_id)
    return acc.name if acc else "—"


def confirm_delete(key: str, label: str) -> bool:
    """Destructive actions need the checkbox ticked before the button does anything."""
    sure = st.checkbox(f"Confirm removal of {label}", key=f"confirm_{key}")
    clicked = st.button("🗑 Delete", key=f"delete_{key}", disabled=not sure)
    return sure and clicked


def submit(action, *args):
    try:
        action(*args)
    except LedgerValidationError as exc:
        st.error(str(exc))
        return False
    st.rerun()


st.sidebar.markdown("### 💰 Finboard")
menu = st.sidebar.radio("Menu", ["🏠 Dashboard", "💸 Cash Flow", "📈 Investments", "🗂 Categories"])

with st.sidebar.expander("➕ New account"):
    with st.form("account_form", clear_on_submit=True):
        name = st.text_input("Name")
        bank = st.text_input("Bank")
        initial = st.number_input("Initial balance", step=100.0, format="%.2f")
        if st.form_submit_button("Add account"):
            submit(store.add_account, {"name": name, "bank": bank, "initial_balance": initial})


def transaction_form(key, current=None):
    accounts = store.accounts
    if not accounts:
        st.info("Add an account first")
        return None
    ids = [a.id for a in accounts]
    types = list(TransactionType)
    with st.form(key, clear_on_submit=current is None):
        col1, col2 = st.columns(2)
        with col1:
            tx_type = st.selectbox(
                "Type", types, format_func=lambda t: t.value.title(),
                index=types.index(current.type) if current else 1,
            )
            when = st.date_input("Date", value=current.date.date() if current else datetime.now().date())
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f",
                                     value=current.amount if current else 0.0)
            payment = st.text_input("Payment method", value=current.payment_method if current else "")
        with col2:
            account_id = st.selectbox("Account", ids, format_func=account_name,
                                      index=ids.index(current.account_id) if current and current.account_id in ids else 0)
            to_account = st.selectbox("To account (transfers)", [None] + ids,
                                      format_func=lambda i: "—" if i is None else account_name(i),
                                      index=([None] + ids).index(current.to_account_id) if current and current.to_account_id in ids else 0)
            names = [c.name for c in store.categories] + ["Transferência"]
            category = st.selectbox("Category", names,
                                    index=names.index(current.category) if current and current.category in names else 0)
            description = st.text_input("Description", value=current.description if current else "")
        if st.form_submit_button("Save"):
            return {
                "date": datetime.combine(when, datetime.min.time()),
                "account_id": account_id,
                "type": tx_type,
                "category": category,
                "description": description,
                "amount": amount,
                "payment_method": payment,
                "to_account_id": to_account if tx_type == TransactionType.TRANSFER else None,
            }
    return None


def tick_market():
    service.market.merge(feed.tick())
    st.caption(f"Quotes updated {datetime.now():%H:%M:%S}")


@st.fragment(run_every=settings.tick_seconds)
def portfolio_overview():
    tick_market()
    p1, p2 = st.columns(2)
    with p1:
        st.metric("Portfolio value", format_currency(service.portfolio_value()),
                  f"{format_currency(service.portfolio_pl())} ({format_percentage(service.pl_percentage())})")
    with p2:
        best = service.best_performer()
        if best:
            st.metric("Best performer", best.ticker)
        else:
            st.info("No variable income holdings")


@st.fragment(run_every=settings.tick_seconds)
def live_holdings():
    tick_market()
    k1, k2, k3 = st.columns(3)
    with k1:
        st.metric("Invested", format_currency(service.total_invested()))
    with k2:
        st.metric("Current value", format_currency(service.portfolio_value()))
    with k3:
        st.metric("Profit / loss", format_currency(service.portfolio_pl()), format_percentage(service.pl_percentage()))

    holdings = service.holdings()
    titles = {"domestic": "B3", "international": "International", "crypto": "Crypto"}
    for group, items in service.investment_groups().items():
        if not items:
            continue
        st.subheader(titles[group])
        rows = holdings[holdings["id"].isin([inv.id for inv in items])]
        st.dataframe(
            rows.drop(columns=["id"]).assign(
                pl_pct=rows["pl_pct"].map(format_percentage),
                signal=rows["signal"].fillna("—"),
            ),
            use_container_width=True,
        )

    if service.market.prices:
        st.caption("Signals: " + ", ".join(
            f"{ticker} {change_percent(info):+.2f}% {info.signal.value}"
            for ticker, info in service.market.prices.items() if ticker in store.tickers()
        ))


if menu == "🏠 Dashboard":
    st.title("🏠 Dashboard")
    summary = service.monthly_summary()

    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Total balance", format_currency(service.total_balance()))
    with k2:
        st.metric("Income this month", format_currency(summary["income"]))
    with k3:
        st.metric("Expenses this month", format_currency(summary["expense"]))
    with k4:
        st.metric("Savings rate", format_percentage(summary["savings_rate"]))

    left, right = st.columns([3, 2])
    with left:
        daily = pd.DataFrame(summary["daily"], columns=["day", "income", "expense"])
        fig = go.Figure()
        fig.add_trace(go.Bar(x=daily["day"], y=daily["income"], name="Income"))
        fig.add_trace(go.Bar(x=daily["day"], y=daily["expense"], name="Expense"))
        fig.update_layout(template="plotly_dark", barmode="group", margin=dict(t=30, b=10, l=10, r=10))
        st.plotly_chart(fig, use_container_width=True)
    with right:
        if summary["expense_by_category"]:
            df_cat = pd.DataFrame(summary["expense_by_category"], columns=["Category", "Total"])
            st.plotly_chart(px.pie(df_cat, values="Total", names="Category", hole=0.5,
                                   title="Expenses by category"), use_container_width=True)
        else:
            st.info("No expenses this month")

    st.header("💳 Accounts")
    for acc, balance in service.accounts_with_balance():
        st.metric(f"{acc.name} · {acc.bank}", format_currency(balance))

    st.header("🧾 Recent transactions")
    for t in service.recent_transactions(settings.recent_transactions):
        sign = "+" if t.type == TransactionType.INCOME else "" if t.type == TransactionType.TRANSFER else "-"
        st.markdown(f"**{t.description}** · {account_name(t.account_id)} · {format_date(t.date)} · {sign} {format_currency(t.amount)}")

    st.header("📈 Portfolio")
    portfolio_overview()

    st.header("🚀 Market movers")
    movers = asyncio.run(feed.top_movers())
    st.table(pd.DataFrame(
        [{"Ticker": ticker, "Price": format_currency(info.price),
          "Change": f"{'+' if pct >= 0 else ''}{format_percentage(pct / 100)}"}
         for ticker, info, pct in rank_top_movers(movers, settings.top_movers_limit)]
    ))

elif menu == "💸 Cash Flow":
    st.title("💸 Cash Flow")
    st.metric("Total balance", format_currency(service.total_balance()))

    with st.expander("➕ New transaction"):
        data = transaction_form("new_tx")
        if data:
            submit(store.add_transaction, data)

    for day, balance, txs in service.cash_flow():
        st.subheader(f"{format_date(datetime.fromisoformat(day))} · balance {format_currency(balance)}")
        for t in txs:
            with st.expander(f"{t.description} · {t.category} · {format_currency(t.amount)}"):
                edited = transaction_form(f"edit_{t.id}", current=t)
                if edited:
                    submit(store.update_transaction, t.id, edited)
                if confirm_delete(t.id, "this transaction"):
                    store.delete_transaction(t.id)
                    st.rerun()

    frame = service.transactions_frame()
    if not frame.empty:
        st.download_button("⬇ Download CSV", frame.to_csv(index=False), file_name="transactions.csv", mime="text/csv")

elif menu == "📈 Investments":
    st.title("📈 Investments")
    live_holdings()

    st.subheader("Manage holdings")
    for inv in store.investments:
        with st.expander(f"Edit {inv.ticker}"):
            with st.form(f"edit_inv_{inv.id}"):
                qty = st.number_input("Quantity", min_value=0.0, value=float(inv.quantity), format="%.6f")
                price = st.number_input("Purchase price", min_value=0.0, value=float(inv.purchase_price), format="%.2f")
                if st.form_submit_button("Save"):
                    submit(store.update_investment, inv.id, {"quantity": qty, "purchase_price": price})
            if confirm_delete(inv.id, inv.ticker):
                store.delete_investment(inv.id)
                st.rerun()

    if store.fixed_income:
        st.subheader("Fixed income")
        for fi in store.fixed_income:
            with st.expander(f"{fi.name} · {fi.issuer} · {format_currency(fi.amount_invested)} · {fi.yield_rate}"):
                st.caption(f"{format_date(fi.purchase_date)} → {format_date(fi.maturity_date)}")
                with st.form(f"edit_fi_{fi.id}"):
                    amount = st.number_input("Amount invested", min_value=0.0, value=float(fi.amount_invested), format="%.2f")
                    rate = st.text_input("Yield", value=fi.yield_rate)
                    if st.form_submit_button("Save"):
                        submit(store.update_fixed_income, fi.id, {"amount_invested": amount, "yield_rate": rate})
                if confirm_delete(fi.id, fi.name):
                    store.delete_fixed_income(fi.id)
                    st.rerun()

    with st.expander("➕ New investment"):
        kind = st.radio("Kind", ["Variable income", "Fixed income"], horizontal=True)
        with st.form("new_inv", clear_on_submit=True):
            if kind == "Variable income":
                asset_type = st.selectbox("Type", sorted(VARIABLE_ASSET_TYPES, key=lambda t: t.value),
                                          format_func=lambda t: t.value.replace("_", " ").title())
                ticker = st.text_input("Ticker").upper()
                qty = st.number_input("Quantity", min_value=0.0, format="%.6f")
                price = st.number_input("Purchase price", min_value=0.0, format="%.2f")
                bought = st.date_input("Purchase date")
                if st.form_submit_button("Add"):
                    submit(store.add_investment, {"type": asset_type, "ticker": ticker, "quantity": qty,
                                                  "purchase_price": price, "purchase_date": bought})
            else:
                name = st.text_input("Name")
                issuer = st.text_input("Issuer")
                amount = st.number_input("Amount invested", min_value=0.0, format="%.2f")
                rate = st.text_input("Yield", placeholder="110% CDI")
                bought = st.date_input("Purchase date")
                matures = st.date_input("Maturity date")
                if st.form_submit_button("Add"):
                    submit(store.add_fixed_income, {"type": AssetType.FIXED_INCOME, "name": name, "issuer": issuer,
                                                    "amount_invested": amount, "yield_rate": rate,
                                                    "purchase_date": bought, "maturity_date": matures})

elif menu == "🗂 Categories":
    st.title("🗂 Categories")
    for kind in CategoryType:
        st.subheader(kind.value.title())
        for cat in [c for c in store.categories if c.type == kind]:
            cols = st.columns([3, 1])
            with cols[0]:
                new_name = st.text_input("Name", value=cat.name, key=f"cat_{cat.id}", label_visibility="collapsed")
                if new_name != cat.name:
                    submit(store.update_category, cat.id, {"name": new_name})
            with cols[1]:
                if confirm_delete(cat.id, cat.name):
                    store.delete_category(cat.id)
                    st.rerun()

    with st.form("new_cat", clear_on_submit=True):
        name = st.text_input("New category")
        kind = st.selectbox("Type", list(CategoryType), format_func=lambda t: t.value.title())
        if st.form_submit_button("Add category"):
            submit(store.add_category, {"name": name, "type": kind})
