"""
Streamlit Dashboard for Split Ledger

The screen the people sharing expenses look at day to day.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Balances always visible
3. Clear error messages in simple language
4. Every payment shows up in the expense's history
"""

import asyncio
import threading
from decimal import Decimal

import streamlit as st
from pydantic import ValidationError

from splitledger.audit import configure_logging, create_correlation_id
from splitledger.config import get_settings, validate_all_settings
from splitledger.errors import InvalidInputError, LedgerError
from splitledger.models.ledger import NewExpense, NewPerson, PaymentType
from splitledger.orchestrator import (
    LedgerService,
    create_app_components,
    seed_sample_data,
)


# Page configuration
st.set_page_config(
    page_title="Split Ledger",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_service() -> LedgerService:
    """Get or create the ledger service (cached for the process)."""
    settings = get_settings()
    configure_logging(
        settings.app.log_level,
        settings.app.log_format,
        debug=settings.app.debug_mode,
    )
    components = create_app_components(settings)
    if settings.app.seed_sample_data:
        run_async(seed_sample_data(components.service))
    return components.service


@st.cache_resource
def get_payment_lock() -> threading.Lock:
    """
    Process-wide lock for dashboard payments.

    Every browser session shares the cached service but runs each call
    on its own thread and event loop. The service's per-expense asyncio
    locks only serialize payments within one loop, so payments made
    from the dashboard also take this lock.
    """
    return threading.Lock()


def show_error(e: Exception) -> None:
    """Render a ledger error in plain words."""
    if isinstance(e, InvalidInputError):
        st.error(str(e))
        for issue in e.issues:
            st.caption(f"• {issue.field}: {issue.message}")
    elif isinstance(e, ValidationError):
        st.error("Some fields are not valid:")
        for err in e.errors():
            st.caption(f"• {'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
    else:
        st.error(f"Something went wrong: {e}")


def money(value: Decimal) -> str:
    return f"{value:,.2f}"


def main():
    """Main application entry point."""
    service = get_service()

    st.sidebar.title("💸 Split Ledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["👥 People & Balances", "🧾 Expenses", "⚙️ Settings"],
        index=0,
    )

    if page == "👥 People & Balances":
        render_people_page(service)
    elif page == "🧾 Expenses":
        render_expenses_page(service)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_people_page(service: LedgerService):
    """People, their balances and the ledger totals."""
    st.title("👥 People & Balances")

    try:
        totals = run_async(service.total_balances())
        people = run_async(service.people_with_balances())
    except LedgerError as e:
        show_error(e)
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Outstanding", money(totals.total_owed))
    col2.metric("Overpaid", money(totals.total_owing))
    col3.metric("Net", money(totals.net_balance))

    st.markdown("---")

    if not people:
        st.info("No people yet. Add the first one below.")

    for person in people:
        with st.container(border=True):
            left, right = st.columns([3, 1])
            with left:
                st.markdown(
                    f"<span style='color:{person.color}'>●</span> "
                    f"**{person.name}** ({person.initials})",
                    unsafe_allow_html=True,
                )
                st.caption(
                    f"Owed {money(person.total_owed)} · "
                    f"Overpaid {money(person.total_owing)} · "
                    f"Net {money(person.net_balance)} · "
                    f"{person.transaction_count} expense(s)"
                )
            with right:
                if st.button("Delete", key=f"delete-{person.id}"):
                    try:
                        run_async(service.delete_person(
                            person.id,
                            correlation_id=create_correlation_id(),
                        ))
                        st.rerun()
                    except LedgerError as e:
                        show_error(e)

    st.markdown("### Add a person")
    with st.form("new-person", clear_on_submit=True):
        name = st.text_input("Name *")
        initials = st.text_input("Initials *", max_chars=5)
        color = st.color_picker("Color", value="#00D4AA")
        if st.form_submit_button("➕ Add Person", type="primary"):
            try:
                person = NewPerson(name=name, initials=initials, color=color)
                run_async(service.create_person(
                    person,
                    correlation_id=create_correlation_id(),
                ))
                st.rerun()
            except (ValidationError, LedgerError) as e:
                show_error(e)


def render_expenses_page(service: LedgerService):
    """Expense list, expense creation and payment recording."""
    st.title("🧾 Expenses")

    try:
        people = run_async(service.list_people())
        expenses = run_async(service.list_expenses())
    except LedgerError as e:
        show_error(e)
        return

    with st.expander("➕ Add Expense", expanded=not expenses):
        if not people:
            st.info("Add a person first on the People page.")
        else:
            with st.form("new-expense", clear_on_submit=True):
                person = st.selectbox(
                    "Paid for *",
                    options=people,
                    format_func=lambda p: p.name,
                )
                amount = st.text_input("Amount *", placeholder="45.50")
                category = st.text_input("Category *", value="food")
                payment_method = st.selectbox(
                    "Payment method *",
                    options=["upi", "cash", "credit_card", "debit_card", "bank_transfer"],
                )
                bank_app = st.text_input("Bank app (optional)")
                notes = st.text_area("Notes (optional)")
                if st.form_submit_button("Save Expense", type="primary"):
                    try:
                        expense = NewExpense(
                            amount_paid_for=amount,
                            paid_for_person_id=person.id,
                            category=category,
                            payment_method=payment_method,
                            bank_app=bank_app or None,
                            notes=notes or None,
                        )
                        run_async(service.create_expense(
                            expense,
                            correlation_id=create_correlation_id(),
                        ))
                        st.rerun()
                    except (ValidationError, LedgerError) as e:
                        show_error(e)

    st.markdown("---")

    if not expenses:
        st.info("No expenses recorded yet.")
        return

    for expense in expenses:
        badge = "🟢 Paid" if expense.is_paid else "🟠 Unpaid"
        title = (
            f"{badge} · {expense.person.name} · {expense.category} · "
            f"{money(expense.amount_paid)} / {money(expense.amount_paid_for)}"
        )
        with st.expander(title):
            render_expense_detail(service, expense.id)


def render_expense_detail(service: LedgerService, expense_id: str):
    """One expense with its payment history and a payment form."""
    try:
        details = run_async(service.get_expense_details(expense_id))
    except LedgerError as e:
        show_error(e)
        return

    st.markdown(f"**Method:** {details.payment_method}"
                + (f" ({details.bank_app})" if details.bank_app else ""))
    if details.notes:
        st.markdown(f"**Notes:** {details.notes}")
    st.markdown(f"**Created:** {details.created_at:%d %B %Y %H:%M}")
    if details.paid_at:
        st.markdown(f"**Fully paid:** {details.paid_at:%d %B %Y %H:%M}")

    if details.payments:
        st.markdown("**Payments**")
        st.table([
            {
                "When": f"{p.created_at:%d %b %Y %H:%M}",
                "Amount": money(p.amount),
                "Type": p.payment_type.value,
                "Notes": p.notes or "",
            }
            for p in details.payments
        ])

    remaining = details.remaining
    with st.form(f"pay-{expense_id}", clear_on_submit=True):
        amount = st.text_input(
            "Payment amount",
            value=str(remaining) if remaining > 0 else "",
        )
        payment_type = st.selectbox(
            "Type",
            options=list(PaymentType),
            format_func=lambda t: t.value.title(),
        )
        notes = st.text_input("Notes (optional)", key=f"pay-notes-{expense_id}")
        if st.form_submit_button("💰 Record Payment"):
            try:
                with get_payment_lock():
                    outcome = run_async(service.apply_payment(
                        expense_id=expense_id,
                        amount=amount,
                        payment_type=payment_type,
                        notes=notes or None,
                    ))
                if outcome.newly_paid:
                    st.success("Expense fully paid!")
                st.rerun()
            except LedgerError as e:
                show_error(e)


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    settings = get_settings()
    status = validate_all_settings()

    for key, label in [("app", "Application"), ("api", "HTTP API"),
                       ("google_sheets", "Google Sheets (Storage)")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {label} - OK")
        else:
            st.error(f"❌ {label} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown("---")
    st.markdown(f"**Storage backend:** `{settings.app.storage_backend.value}`")
    st.markdown(f"**Balance source:** `{settings.app.balance_source.value}`")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
