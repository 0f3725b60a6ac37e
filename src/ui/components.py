"""
components.py - reusable Streamlit components / forms / displays

This module contains pure-UI helpers used by the dashboard:
 - sign-in gate (current_identity, display_login)
 - balance card with the settle-up flow
 - expense form, filters, expense table with CSV/XLSX export
 - analytics charts, insights, settlement history, edit/delete

Every mutation goes through the tracker; a TrackerError is shown with
st.error and success is only reported after the store accepted the write.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from io import BytesIO
import datetime

import altair as alt
import pandas as pd
import streamlit as st

from src.config import AppConfig
from src.errors import TrackerError
from src.models import (
    ALL,
    CATEGORY_COLORS,
    Balance,
    Category,
    DailyPoint,
    ExpenseRecord,
    FilterCriteria,
    Insights,
    Period,
    RecordKind,
)

EXPORT_COLUMNS = [
    "date",
    "type",
    "user",
    "category",
    "amount",
    "split_amount",
    "paid_by",
    "paid_to",
    "note",
    "id",
]

PERIOD_LABELS = {
    Period.TODAY: "Today",
    Period.WEEK: "Week",
    Period.MONTH: "Month",
    Period.ALL: "All Time",
    Period.CUSTOM: "Custom range",
}


# Trigger a Streamlit rerun in a way compatible with multiple Streamlit versions.
def trigger_rerun():
    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


def fmt_money(amount: float, config: AppConfig) -> str:
    return f"{config.currency_symbol}{amount:,.2f}"


# -----------------------
# Identity
# -----------------------
def current_identity() -> Optional[str]:
    """Email of the signed-in user, or None when nobody is signed in."""
    user = getattr(st, "user", None) or getattr(st, "experimental_user", None)
    if user is None or not getattr(user, "is_logged_in", False):
        return None
    return getattr(user, "email", None)


def display_login(config: AppConfig, identity: Optional[str]):
    st.title("Shared Expenses")
    if identity:
        st.error(f"{identity} is not allowed to use this app.")
        if st.button("Sign out") and hasattr(st, "logout"):
            st.logout()
        return
    st.write(f"Sign in as {config.party_a} or {config.party_b} to continue.")
    if st.button("Sign in with Google") and hasattr(st, "login"):
        st.login()


# -----------------------
# Balance / settle up
# -----------------------
def display_balance_card(balance: Balance, config: AppConfig, on_settle: Callable[[bool], None]):
    """
    Show who owes whom. on_settle(confirmed) is only offered while there is
    an outstanding balance.
    """
    st.subheader("Balance")
    if balance.is_settled:
        st.success("All settled up! 🎉")
        return
    st.metric(
        label=f"{balance.debtor} owes {balance.creditor}",
        value=fmt_money(balance.net_amount, config),
    )
    st.caption("Based on shared expenses and recorded settlements")
    with st.form(key="settle_form"):
        confirmed = st.checkbox(
            f"I confirm {balance.debtor} paid {balance.creditor} {fmt_money(balance.net_amount, config)}"
        )
        if st.form_submit_button("Settle up"):
            on_settle(confirmed)


# -----------------------
# Add expense
# -----------------------
@dataclass
class ExpenseInput:
    """Lightweight container passed to the on_submit callback."""
    payer: str
    kind: str
    category: str
    amount: float
    date: datetime.date
    note: str
    split_amount: Optional[float]


def _category_select(label: str, key: str, current: Optional[Category] = None) -> Category:
    options = Category.spending()
    index = options.index(current) if current in options else 0
    return st.selectbox(label, options=options, index=index, format_func=lambda c: c.label, key=key)


def display_expense_form(on_submit: Callable[[ExpenseInput], None], config: AppConfig, default_payer: Optional[str]):
    """
    Display the 'Add Expense' form.

    The form enforces the basic rules (amount > 0, custom split within the
    amount); the tracker validates again before writing.
    """
    st.header("Add Expense")
    with st.form(key="expense_form"):
        parties = list(config.parties)
        payer = st.selectbox(
            "Paid by", options=parties, index=_party_index(parties, default_payer, 0)
        )
        kind = st.radio(
            "Type",
            options=[RecordKind.PERSONAL.value, RecordKind.SHARED.value],
            format_func=str.capitalize,
            horizontal=True,
        )
        category = _category_select("Category", key="add_category")
        amount = st.number_input("Amount", min_value=0.0, format="%.2f")
        date_val = st.date_input("Date", value=datetime.date.today())
        note = st.text_input("Note (optional)")
        custom_split = st.checkbox("Custom split (shared only)")
        split_value = st.number_input("Amount owed by the other person", min_value=0.0, format="%.2f")

        if st.form_submit_button("Add Expense"):
            if amount <= 0:
                st.error("Please enter a valid amount.")
                return
            split_amount = None
            if kind == RecordKind.SHARED.value and custom_split:
                if split_value > amount:
                    st.error(f"Split {split_value:.2f} exceeds the amount {amount:.2f}.")
                    return
                split_amount = round(split_value, 2)
            on_submit(
                ExpenseInput(
                    payer=payer,
                    kind=kind,
                    category=category.value,
                    amount=round(amount, 2),
                    date=date_val,
                    note=note.strip(),
                    split_amount=split_amount,
                )
            )


# -----------------------
# Filters / list / export
# -----------------------
def display_filters(config: AppConfig, key_prefix: str) -> FilterCriteria:
    """Filter controls; returns an immutable FilterCriteria."""
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        party = st.selectbox("User", options=[ALL] + list(config.parties), key=f"{key_prefix}_party")
    with col2:
        category = st.selectbox(
            "Category",
            options=[ALL] + [c.value for c in Category.spending()],
            format_func=lambda v: "all" if v == ALL else Category(v).label,
            key=f"{key_prefix}_category",
        )
    with col3:
        kind = st.selectbox(
            "Type", options=[ALL, RecordKind.PERSONAL.value, RecordKind.SHARED.value], key=f"{key_prefix}_kind"
        )
    with col4:
        period = st.selectbox(
            "Period",
            options=list(Period),
            index=list(Period).index(Period.MONTH),
            format_func=lambda p: PERIOD_LABELS[p],
            key=f"{key_prefix}_period",
        )
    start = end = None
    if period is Period.CUSTOM:
        c1, c2 = st.columns(2)
        with c1:
            start = st.date_input("From", value=datetime.date.today().replace(day=1), key=f"{key_prefix}_start")
        with c2:
            end = st.date_input("To", value=datetime.date.today(), key=f"{key_prefix}_end")
        if start > end:
            start, end = end, start
    return FilterCriteria(party=party, category=category, kind=kind, period=period, start=start, end=end)


def records_to_frame(records: List[ExpenseRecord]) -> pd.DataFrame:
    """Flat table of records in the fixed export column order."""
    rows = []
    for r in records:
        rows.append({
            "date": r.date.isoformat() if r.date else "",
            "type": r.kind.value,
            "user": r.payer,
            "category": r.category.value,
            "amount": float(r.amount),
            "split_amount": r.resolved_split_amount if r.kind is RecordKind.SHARED else None,
            "paid_by": r.paid_by or "",
            "paid_to": r.paid_to or "",
            "note": r.note,
            "id": r.id,
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def display_expense_list(records: List[ExpenseRecord], config: AppConfig):
    """Render records as a table and provide CSV and XLSX downloads."""
    st.subheader("Transactions")
    if not records:
        st.write("No expenses match your current filters.")
        return
    df = records_to_frame(records)
    st.dataframe(df.style.format({"amount": "{:.2f}", "split_amount": "{:.2f}"}, na_rep=""), use_container_width=True)

    today = datetime.date.today().isoformat()
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            label="Download CSV",
            data=df.to_csv(index=False).encode("utf-8"),
            file_name=f"expenses_{today}.csv",
            mime="text/csv",
        )
    with col2:
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="expenses")
        st.download_button(
            label="Download XLSX",
            data=buffer.getvalue(),
            file_name=f"expenses_{today}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


# -----------------------
# Analytics
# -----------------------
def display_insights(insights: Insights, config: AppConfig):
    st.subheader("Insights")
    if not insights.transactions:
        st.info("Add some expenses to see insights.")
        return
    c1, c2, c3, c4 = st.columns(4)
    c1.metric(
        "Top category",
        insights.top_category.label if insights.top_category else "N/A",
        fmt_money(insights.top_category_amount, config),
        delta_color="off",
    )
    c2.metric("Average daily", fmt_money(insights.average_daily, config), f"across {insights.active_days} days",
              delta_color="off")
    c3.metric("Monthly trend", f"{insights.month_change_pct:+.1f}%", delta_color="off")
    largest = insights.largest_expense
    c4.metric("Largest expense", fmt_money(largest.amount, config), largest.category.label, delta_color="off")
    if insights.month_projection is not None:
        st.caption(f"Projected month-end spending: {fmt_money(insights.month_projection, config)}")


def display_category_breakdown(totals: Dict[Category, float], config: AppConfig):
    """Pie chart of spending per category with a stable color per category."""
    st.subheader("Category Breakdown")
    if not totals:
        st.write("No spending to display.")
        return
    total_amount = float(sum(totals.values()))
    rows = []
    for cat, amt in totals.items():
        pct = (amt / total_amount * 100) if total_amount > 0 else 0.0
        st.write(f"  {cat.label}: {fmt_money(amt, config)} ({pct:.1f}%)")
        rows.append({"category": cat.label, "amount": amt, "percent": pct, "color": CATEGORY_COLORS[cat]})
    df = pd.DataFrame(rows)
    color_scale = alt.Scale(domain=list(df["category"]), range=list(df["color"]))
    pie = alt.Chart(df).mark_arc(innerRadius=50).encode(
        theta=alt.Theta(field="amount", type="quantitative"),
        color=alt.Color(field="category", type="nominal", scale=color_scale, legend=alt.Legend(title="Category")),
        tooltip=[
            alt.Tooltip("category:N", title="Category"),
            alt.Tooltip("amount:Q", title="Amount", format=".2f"),
            alt.Tooltip("percent:Q", title="Share", format=".1f"),
        ],
    )
    st.altair_chart(pie, use_container_width=True)


def display_party_spending(paid: Dict[str, float], share: Dict[str, float], config: AppConfig):
    """Grouped bars: what each party paid vs. their share of spending."""
    st.subheader("Spending by User")
    rows = []
    for party in config.parties:
        rows.append({"user": party, "measure": "Paid", "amount": paid.get(party, 0.0)})
        rows.append({"user": party, "measure": "Share", "amount": share.get(party, 0.0)})
    df = pd.DataFrame(rows)
    chart = alt.Chart(df).mark_bar().encode(
        x=alt.X("user:N", title=None),
        xOffset="measure:N",
        y=alt.Y("amount:Q", title="Amount"),
        color=alt.Color("measure:N", legend=alt.Legend(title=None)),
        tooltip=["user:N", "measure:N", alt.Tooltip("amount:Q", format=".2f")],
    ).properties(height=260)
    st.altair_chart(chart, use_container_width=True)


def display_kind_split(by_kind: Dict[RecordKind, float], contribution: Dict[str, float], config: AppConfig):
    st.subheader("Personal vs Shared")
    total = sum(by_kind.values())
    c1, c2 = st.columns(2)
    for col, kind in ((c1, RecordKind.PERSONAL), (c2, RecordKind.SHARED)):
        amount = by_kind.get(kind, 0.0)
        pct = (amount / total * 100) if total > 0 else 0.0
        col.metric(kind.value.capitalize(), fmt_money(amount, config), f"{pct:.1f}% of total", delta_color="off")
    shared_total = sum(contribution.values())
    if shared_total > 0:
        st.markdown("**Shared expense contributions**")
        for party, amount in contribution.items():
            st.write(f"  {party}: {fmt_money(amount, config)} ({amount / shared_total * 100:.1f}% of shared)")


def display_daily_trend(points: List[DailyPoint], config: AppConfig):
    st.subheader(f"Daily Spending (last {len(points)} days)")
    rows = []
    for p in points:
        for party, amount in p.by_party.items():
            rows.append({"date": pd.Timestamp(p.date), "user": party, "amount": amount})
    df = pd.DataFrame(rows)
    if df.empty:
        st.write("No data.")
        return
    chart = alt.Chart(df).mark_line(point=True).encode(
        x=alt.X("date:T", title="Day", axis=alt.Axis(format="%b %d")),
        y=alt.Y("amount:Q", title="Amount"),
        color=alt.Color("user:N", legend=alt.Legend(title="User")),
        tooltip=[alt.Tooltip("date:T", format="%Y-%m-%d"), "user:N", alt.Tooltip("amount:Q", format=".2f")],
    ).properties(height=280)
    st.altair_chart(chart, use_container_width=True)


# -----------------------
# Settlements
# -----------------------
def _party_index(parties: List[str], name: Optional[str], default: int) -> int:
    return parties.index(name) if name in parties else default


def display_settlement_history(settlements: List[ExpenseRecord], total: float, tracker):
    """List settlements (newest first) with an edit form per entry."""
    config = tracker.config
    st.header("Settlement History")
    if not settlements:
        st.info("Settlements will appear here when you settle balances.")
        return
    st.markdown(f"**Total settled: {fmt_money(total, config)}**")
    parties = list(config.parties)
    for s in settlements:
        label = f"{s.date} · {s.paid_by} → {s.paid_to} · {fmt_money(s.amount, config)}"
        with st.expander(label):
            if s.note:
                st.caption(s.note)
            if s.settled_by_actor:
                st.caption(f"Recorded by {s.settled_by_actor}")
            if s.paid_by not in parties or s.paid_to not in parties:
                st.warning(
                    "This settlement does not name both users and is left out of the balance. Fix it below."
                )
            with st.form(key=f"edit_settlement_{s.key}"):
                paid_by = st.selectbox("Paid by", options=parties, index=_party_index(parties, s.paid_by, 0))
                paid_to = st.selectbox("Paid to", options=parties, index=_party_index(parties, s.paid_to, 1))
                amount = st.number_input("Amount", min_value=0.0, format="%.2f", value=float(s.amount))
                date_val = st.date_input("Date", value=s.date or datetime.date.today())
                note = st.text_input("Note", value=s.note)
                if st.form_submit_button("Save changes"):
                    try:
                        tracker.settlements.edit_settlement(
                            s, paid_by=paid_by, paid_to=paid_to, amount=amount, date=date_val, note=note
                        )
                    except TrackerError as exc:
                        st.error(str(exc))
                    else:
                        st.success("Settlement updated. Check the balance again.")
                        trigger_rerun()
            _delete_controls(tracker, s)


# -----------------------
# Edit / delete
# -----------------------
def _delete_controls(tracker, record: ExpenseRecord):
    confirm = st.checkbox("I confirm I want to delete this entry", key=f"confirm_delete_{record.key}")
    if st.button("Delete", key=f"delete_{record.key}"):
        try:
            tracker.delete_expense(record, confirmed=confirm)
        except TrackerError as exc:
            st.error(str(exc))
        else:
            st.success("Deleted.")
            trigger_rerun()


def display_manage_expenses(tracker):
    """
    UI to select, edit and delete an existing expense.
    Expects an ExpenseTracker with records, edit_expense() and delete_expense().
    """
    config = tracker.config
    st.header("Edit / Delete Expense")
    exs = [r for r in tracker.records if not r.is_settlement]
    if not exs:
        st.info("No expenses recorded.")
        return

    options = {
        f"{e.date} {e.category.label} {fmt_money(e.amount, config)} ({e.payer}, {e.kind.value})": e.key for e in exs
    }
    sel_label = st.selectbox("Select expense", options=list(options.keys()))
    expense = tracker.find(options[sel_label])
    if not expense:
        st.error("Selected expense not found.")
        return

    parties = list(config.parties)
    kinds = [RecordKind.PERSONAL.value, RecordKind.SHARED.value]
    with st.form(key=f"edit_expense_{expense.key}"):
        payer = st.selectbox(
            "Paid by", options=parties, index=_party_index(parties, expense.payer, 0)
        )
        kind = st.radio("Type", options=kinds, index=kinds.index(expense.kind.value), horizontal=True)
        category = _category_select("Category", key=f"edit_category_{expense.key}", current=expense.category)
        amount = st.number_input("Amount", min_value=0.0, format="%.2f", value=float(expense.amount))
        date_val = st.date_input("Date", value=expense.date or datetime.date.today())
        note = st.text_input("Note", value=expense.note)
        custom_split = st.checkbox("Custom split", value=expense.is_custom_split)
        split_value = st.number_input(
            "Amount owed by the other person",
            min_value=0.0,
            format="%.2f",
            value=float(expense.resolved_split_amount if expense.kind is RecordKind.SHARED else 0.0),
        )

        if st.form_submit_button("Save changes"):
            split_amount = round(split_value, 2) if (kind == RecordKind.SHARED.value and custom_split) else None
            try:
                tracker.edit_expense(
                    expense,
                    payer=payer,
                    kind=kind,
                    category=category.value,
                    amount=round(amount, 2),
                    date=date_val,
                    note=note,
                    split_amount=split_amount,
                )
            except TrackerError as exc:
                st.error(str(exc))
            else:
                st.success("Expense updated.")
                trigger_rerun()

    # Delete UI (separate to avoid accidental deletes)
    st.markdown("---")
    st.write("Delete this expense")
    _delete_controls(tracker, expense)
