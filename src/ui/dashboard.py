"""
dashboard.py - Streamlit UI entrypoint and orchestration

This module wires the UI components (src.ui.components) with the business logic
(src.tracker, src.filters). The main() function gates on the signed-in
identity, opens the store subscription for the duration of the script run and
routes the sidebar menu to the pages.

Design notes:
 - Keep the dashboard responsible only for UI orchestration and presentation.
 - All persistence and business rules live in src.tracker / src.settlements.
 - Derived figures are recomputed from the latest snapshot on every run.
"""

from typing import Optional

import streamlit as st

from src import filters
from src.balance import calculate_balance
from src.config import AppConfig
from src.errors import TrackerError
from src.tracker import ExpenseTracker
from src.ui import components


def _show_storage_status(tracker: ExpenseTracker):
    backend_name, backend_msg = tracker.storage_status()
    if backend_name == "google_sheets":
        st.sidebar.success(backend_msg)
    else:
        st.sidebar.warning(backend_msg)
        st.sidebar.caption(
            "For cloud persistence, set GOOGLE_SHEET_ID and "
            "GOOGLE_SERVICE_ACCOUNT_JSON in Streamlit app Secrets."
        )


def _dashboard_page(tracker: ExpenseTracker, identity: Optional[str]):
    config = tracker.config
    state = tracker.state

    def on_settle(confirmed: bool):
        try:
            draft = tracker.settlements.propose_settlement(state.balance)
            tracker.settlements.commit_settlement(draft, identity, confirmed=confirmed)
        except TrackerError as exc:
            st.error(str(exc))
        else:
            st.success("Settlement recorded.")
            components.trigger_rerun()

    components.display_balance_card(state.balance, config, on_settle)

    criteria = components.display_filters(config, key_prefix="dashboard")
    lines = filters.filter_lines(state.lines, criteria)
    shown = [line.record for line in lines]
    spending = filters.filter_records(state.records, criteria)

    paid = filters.paid_by_party(spending, config)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total spent", components.fmt_money(sum(paid.values()), config))
    c2.metric(f"{config.party_a} paid", components.fmt_money(paid[config.party_a], config))
    c3.metric(f"{config.party_b} paid", components.fmt_money(paid[config.party_b], config))

    components.display_expense_list(shown, config)
    components.display_insights(filters.summarize(spending), config)
    components.display_category_breakdown(filters.sum_by_category(spending), config)


def _analytics_page(tracker: ExpenseTracker):
    config = tracker.config
    st.header("Analytics")
    criteria = components.display_filters(config, key_prefix="analytics")
    records = filters.filter_records(tracker.records, criteria)
    if not records:
        st.info("No expenses match your current filters.")
        return
    components.display_daily_trend(filters.daily_series(records, config), config)
    components.display_category_breakdown(filters.sum_by_category(records), config)
    components.display_party_spending(
        filters.paid_by_party(records, config), filters.share_by_party(records, config), config
    )
    components.display_kind_split(
        filters.sum_by_kind(records), filters.shared_contribution(records, config), config
    )
    selection_balance = calculate_balance(records, config)
    st.caption(f"Balance for this selection: {selection_balance.describe(config.currency_symbol)}")


def _add_page(tracker: ExpenseTracker, identity: Optional[str]):
    def on_submit(exp_input: components.ExpenseInput):
        try:
            tracker.add_expense(
                payer=exp_input.payer,
                category=exp_input.category,
                amount=exp_input.amount,
                date=exp_input.date,
                note=exp_input.note,
                kind=exp_input.kind,
                split_amount=exp_input.split_amount,
            )
        except TrackerError as exc:
            st.error(str(exc))
        else:
            st.success("Expense added.")

    components.display_expense_form(on_submit, tracker.config, tracker.config.party_for_identity(identity))


def main():
    """
    Streamlit page: sidebar menu controls which view is shown.
    Pages:
      - Dashboard: balance + settle up, filtered transactions, insights
      - Add Expense: personal or shared, optional custom split
      - Analytics: trend, categories, per-user and personal/shared charts
      - Settlements: history with edit/delete
      - Edit Expense: edit or delete an expense
    """
    st.set_page_config(page_title="Shared Expenses", page_icon="💸")
    try:
        config = AppConfig.from_env()
    except TrackerError as exc:
        st.error(f"Configuration error: {exc}")
        return
    identity = components.current_identity()
    if config.identities and not config.is_allowed(identity):
        components.display_login(config, identity)
        return

    st.title("Shared Expenses")
    tracker = ExpenseTracker(config)
    _show_storage_status(tracker)
    if not config.identities:
        st.sidebar.caption("Sign-in disabled: set USER1_EMAIL and USER2_EMAIL to restrict access.")
    elif identity:
        st.sidebar.caption(f"Signed in as {identity} ({config.party_for_identity(identity)})")

    menu = ["Dashboard", "Add Expense", "Analytics", "Settlements", "Edit Expense"]
    choice = st.sidebar.selectbox("Select an option", menu)

    try:
        subscription = tracker.subscribe()
    except TrackerError as exc:
        st.error(f"Could not load expenses: {exc}")
        return

    with subscription:
        if choice == "Dashboard":
            _dashboard_page(tracker, identity)
        elif choice == "Add Expense":
            _add_page(tracker, identity)
        elif choice == "Analytics":
            _analytics_page(tracker)
        elif choice == "Settlements":
            settlements = tracker.settlements.list_settlements(tracker.records)
            components.display_settlement_history(
                settlements, tracker.settlements.total_settled(settlements), tracker
            )
        elif choice == "Edit Expense":
            components.display_manage_expenses(tracker)


if __name__ == "__main__":
    main()
