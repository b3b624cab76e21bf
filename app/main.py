"""
Streamlit Frontend for Bill Tracker

Paste your bill notes, check what was found, and save the ones you want.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is saved
3. Short error messages in plain language
4. Visual feedback for all operations

The UI enforces the human-in-the-loop principle:
- User sees every bill that was found
- User unticks the ones they don't want
- Nothing is saved without the explicit "Import" action
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from billtracker.audit import create_correlation_id
from billtracker.config import validate_all_settings
from billtracker.errors import BillImportError
from billtracker.models.bill import BillFrequency, BillInput, BillUpdate
from billtracker.models.imports import ReconcileState
from billtracker.orchestrator import AppComponents, BillImportFlow, create_app_components
from billtracker.queries import (
    SummaryService,
    bills_by_date,
    current_month_bills,
    upcoming_bills,
)
from billtracker.reconcile import CollectingNotifier, StaticAuthContext
from billtracker.services.storage import StorageError


PAGES = ["📥 Import Bills", "📋 Bills", "📊 Overview", "⚙️ Settings"]

# Page configuration
st.set_page_config(
    page_title="Bill Tracker",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def money(amount: Decimal, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


def current_user_id():
    return st.session_state.get("user_id")


def show_notifications(notifier: CollectingNotifier) -> None:
    for note in notifier.drain():
        icon = "⚠️" if note.variant == "destructive" else "✅"
        st.toast(f"**{note.title}** {note.message}", icon=icon)


def main():
    """Main application entry point."""
    components = get_components()

    # Navigation requested by the previous run (e.g. after an import)
    if "nav_target" in st.session_state:
        st.session_state.page = st.session_state.pop("nav_target")

    st.sidebar.title("🧾 Bill Tracker")
    st.sidebar.markdown("---")

    name = st.sidebar.text_input(
        "Signed in as",
        value=st.session_state.get("user_id") or "",
        placeholder="your email",
    )
    st.session_state.user_id = name.strip() or None

    page = st.sidebar.radio("Navigate to:", PAGES, key="page")

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to import:**
        1. Paste your bills, one per line
        2. Untick anything you don't want
        3. Press Import
        """
    )

    if page == PAGES[0]:
        render_import_page(components)
    elif page == PAGES[1]:
        render_bills_page(components)
    elif page == PAGES[2]:
        render_overview_page(components)
    elif page == PAGES[3]:
        render_settings_page(components)

    if "notifier" in st.session_state:
        show_notifications(st.session_state.notifier)


def get_reconciler(components: AppComponents):
    """One reconciler per browser session."""
    if "reconciler" not in st.session_state:
        st.session_state.notifier = CollectingNotifier()
        st.session_state.auth = StaticAuthContext()
        st.session_state.reconciler = components.new_reconciler(
            auth=st.session_state.auth,
            notifier=st.session_state.notifier,
        )
    # Auth follows whoever is signed in right now
    st.session_state.auth.user_id = current_user_id()
    return st.session_state.reconciler


def render_import_page(components: AppComponents):
    """Render the paste-and-import page."""
    st.title("📥 Import Bills")
    st.markdown("Paste your bill notes below. One bill per line works best.")

    flow: BillImportFlow = components.flow
    if flow is None:
        st.error("The AI service isn't configured. See the Settings page.")
        return

    reconciler = get_reconciler(components)

    # Step 1: Paste
    if reconciler.state is ReconcileState.IDLE:
        text = st.text_area(
            "Your bills",
            height=200,
            placeholder="Netflix R199 due 5th\nRent 8500 on the 1st\nGym 450 monthly",
        )

        if st.button("🔍 Find Bills", type="primary"):
            correlation_id = create_correlation_id()
            reconciler.correlation_id = correlation_id
            with st.spinner("Reading your notes..."):
                try:
                    candidates = run_async(flow.extract_bills(text, correlation_id))
                except BillImportError as e:
                    st.error(flow.user_message(e))
                    st.button("Try again")
                    return
            run_async(reconciler.present(candidates))
            if reconciler.state is ReconcileState.AWAITING_SELECTION:
                st.rerun()

    # Step 2: Review and select
    if reconciler.state is ReconcileState.AWAITING_SELECTION:
        candidates = reconciler.candidates
        st.subheader(f"Found {len(candidates)} bills")

        col1, col2, _ = st.columns([1, 1, 4])
        with col1:
            if st.button("Select all"):
                reconciler.select_all()
        with col2:
            if st.button("Select none"):
                reconciler.deselect_all()

        for candidate in candidates:
            key = f"candidate_{reconciler.correlation_id}_{candidate.candidate_id}"
            # The reconciler owns the selection; the checkbox mirrors it
            st.session_state[key] = reconciler.is_selected(candidate.candidate_id)
            label = (
                f"**{candidate.name}** · {candidate.amount:,.2f} · "
                f"due {candidate.due_date} · {candidate.category} · "
                f"{candidate.frequency.value}"
            )
            st.checkbox(
                label,
                key=key,
                on_change=reconciler.toggle,
                args=(candidate.candidate_id,),
            )

        count = len(reconciler.selected_ids)
        st.markdown("---")
        col1, col2 = st.columns(2)
        with col1:
            if st.button(f"✅ Import {count} bills", type="primary", disabled=count == 0):
                try:
                    report = run_async(reconciler.commit())
                except BillImportError:
                    pass  # the notifier already holds the message
                else:
                    st.session_state.last_report = report
                    st.session_state.nav_target = PAGES[1]
                    run_async(reconciler.reset())
                    st.rerun()
        with col2:
            if st.button("❌ Start Over"):
                run_async(reconciler.reset())
                st.rerun()


def render_edit_form(store, user_id: str, bill, categories: list[str]):
    """Edit a bill's fields; only changed fields are sent."""
    options = categories if bill.category in categories else [bill.category] + categories
    frequencies = list(BillFrequency)

    with st.form(f"edit_{bill.id}"):
        st.markdown(f"**Edit {bill.name}**")
        name = st.text_input("Name *", value=bill.name)
        amount = st.number_input(
            "Amount *", min_value=0.0, step=0.01, format="%.2f", value=float(bill.amount)
        )
        due_date = st.date_input("Due Date *", value=bill.due_date)
        category = st.selectbox("Category *", options=options, index=options.index(bill.category))
        frequency = st.selectbox(
            "Frequency",
            options=frequencies,
            index=frequencies.index(bill.frequency),
            format_func=lambda x: x.value,
        )

        col1, col2 = st.columns(2)
        save = col1.form_submit_button("💾 Save changes")
        cancel = col2.form_submit_button("Cancel")

    if cancel:
        st.session_state.pop("editing_bill", None)
        st.rerun()
    if not save:
        return
    if not name.strip() or amount <= 0:
        st.error("Please enter a name and an amount")
        return

    try:
        update = BillUpdate.from_edits(
            bill,
            name=name,
            amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            due_date=due_date,
            category=category,
            frequency=frequency,
        )
        if update.changes():
            run_async(store.update(user_id, bill.id, update))
    except (ValueError, StorageError) as e:
        st.error(f"Could not save changes: {e}")
        return
    st.session_state.pop("editing_bill", None)
    st.toast("Bill updated")
    st.rerun()


def render_bills_page(components: AppComponents):
    """Render the bill list."""
    st.title("📋 Your Bills")

    user_id = current_user_id()
    if not user_id:
        st.info("Sign in from the sidebar to see your bills.")
        return

    store = components.bill_store
    categories = components.settings.importer.categories_list

    report = st.session_state.pop("last_report", None)
    if report is not None:
        box = "success-box" if report.error_count == 0 else "warning-box"
        st.markdown(f"""
        <div class="{box}">
            <h4>Import Complete</h4>
            <p>{report.summary}</p>
        </div>
        """, unsafe_allow_html=True)

    col1, col2, col3 = st.columns(3)
    with col1:
        search = st.text_input("Search by name")
    with col2:
        category = st.selectbox(
            "Filter by Category",
            options=[None] + categories,
            format_func=lambda x: "All Categories" if x is None else x,
        )
    with col3:
        status = st.selectbox(
            "Filter by Status",
            options=[None, False, True],
            format_func=lambda x: {None: "All", False: "Unpaid", True: "Paid"}[x],
        )

    bills = run_async(store.list_bills(
        user_id,
        category=category,
        is_paid=status,
        search=search or None,
    ))

    if not bills:
        st.info("No bills yet. Use the 'Import Bills' page to add some.")

    for bill in bills:
        col1, col2, col3, col4, col5, col6 = st.columns([3, 2, 2, 1, 1, 1])
        col1.markdown(f"**{bill.name}**  \n{bill.category} · {bill.frequency.value}")
        col2.markdown(f"{bill.amount:,.2f}")
        col3.markdown(f"Due {bill.due_date.strftime('%d %b %Y')}")
        paid_label = "↩️ Unpaid" if bill.is_paid else "✔️ Paid"
        if col4.button(paid_label, key=f"paid_{bill.id}"):
            run_async(store.toggle_paid(user_id, bill.id))
            st.rerun()
        if col5.button("✏️", key=f"edit_{bill.id}"):
            st.session_state.editing_bill = bill.id
            st.rerun()
        if col6.button("🗑️", key=f"delete_{bill.id}"):
            run_async(store.delete(user_id, bill.id))
            st.rerun()
        if st.session_state.get("editing_bill") == bill.id:
            render_edit_form(store, user_id, bill, categories)

    with st.expander("➕ Add a bill"):
        with st.form("add_bill", clear_on_submit=True):
            name = st.text_input("Name *")
            amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
            due_date = st.date_input("Due Date *", value=date.today())
            new_category = st.selectbox("Category *", options=categories)
            frequency = st.selectbox(
                "Frequency",
                options=list(BillFrequency),
                index=list(BillFrequency).index(BillFrequency.MONTHLY),
                format_func=lambda x: x.value,
            )
            if st.form_submit_button("Save"):
                if not name or amount <= 0:
                    st.error("Please enter a name and an amount")
                else:
                    run_async(store.create(user_id, BillInput(
                        name=name,
                        amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                        due_date=due_date,
                        category=new_category,
                        frequency=frequency,
                    )))
                    st.rerun()


def render_overview_page(components: AppComponents):
    """Render totals, reports and the calendar."""
    st.title("📊 Overview")

    user_id = current_user_id()
    if not user_id:
        st.info("Sign in from the sidebar to see your overview.")
        return

    today = date.today()
    summary = SummaryService(components.bill_store, components.profile_store)
    profile = run_async(components.profile_store.get_profile(user_id))
    bills = run_async(components.bill_store.list_bills(user_id))
    overview = run_async(summary.overview(user_id, today))
    leftover = run_async(summary.leftover(user_id))
    currency = profile.currency

    col1, col2, col3, col4 = st.columns(4)
    col1.metric(
        "Upcoming",
        money(overview.total_upcoming, currency),
        f"{overview.upcoming_count} bills",
        delta_color="off",
    )
    col2.metric("Paid", money(overview.total_paid, currency))
    col3.metric("After bills", money(overview.funds_after_bills, currency))
    col4.metric("Left after savings", money(leftover, currency))

    st.markdown("**Savings progress**")
    st.progress(int(overview.savings_progress))

    if overview.next_due:
        bill = overview.next_due
        st.markdown(
            f"Next due: **{bill.name}**, {money(bill.amount, currency)} "
            f"on {bill.due_date.strftime('%d %b')}"
        )

    st.markdown("---")
    col1, col2 = st.columns(2)
    monthly, by_category = run_async(summary.yearly_report(user_id, today.year))
    with col1:
        st.subheader(f"Paid in {today.year}")
        st.bar_chart({m.label: float(m.total) for m in monthly})
    with col2:
        st.subheader("Spending by category")
        if by_category:
            st.bar_chart({k: float(v) for k, v in by_category.items()})
        else:
            st.caption("Nothing paid yet.")

    st.markdown("---")
    st.subheader(f"{today.strftime('%B %Y')}")
    for day, day_bills in bills_by_date(current_month_bills(bills, today)).items():
        names = ", ".join(
            f"{b.name} ({b.amount:,.2f}){' ✔️' if b.is_paid else ''}" for b in day_bills
        )
        st.markdown(f"**{day}**: {names}")

    overdue = [b for b in bills if not b.is_paid and b.due_date < today]
    if overdue:
        st.warning(f"{len(overdue)} unpaid bills are past due.")
    if not upcoming_bills(bills, today) and not overdue:
        st.caption("No unpaid bills.")


def render_settings_page(components: AppComponents):
    """Render profile and connection settings."""
    st.title("⚙️ Settings")

    user_id = current_user_id()
    if user_id:
        profile = run_async(components.profile_store.get_profile(user_id))
        st.markdown("### Profile")
        notifications = profile.notifications
        with st.form("profile"):
            income = st.number_input(
                "Monthly income",
                min_value=0.0,
                value=float(profile.income),
                step=100.0,
            )
            savings_goal = st.number_input(
                "Monthly savings goal",
                min_value=0.0,
                value=float(profile.savings_goal),
                step=100.0,
            )
            currency = st.text_input("Currency", value=profile.currency, max_chars=3)
            due_soon = st.checkbox(
                "Remind me when bills are due soon", value=notifications.due_soon
            )
            paid_confirmation = st.checkbox(
                "Confirm when bills are paid", value=notifications.paid_confirmation
            )
            savings_tips = st.checkbox("Send savings tips", value=notifications.savings_tips)
            if st.form_submit_button("Save"):
                try:
                    run_async(components.profile_store.update_profile(user_id, {
                        "income": Decimal(str(income)),
                        "savings_goal": Decimal(str(savings_goal)),
                        "currency": currency,
                        "notifications": {
                            "due_soon": due_soon,
                            "paid_confirmation": paid_confirmation,
                            "savings_tips": savings_tips,
                        },
                    }))
                    st.success("Profile saved")
                except Exception as e:
                    st.error(f"Failed to save: {str(e)}")
        st.markdown("---")

    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Completion service (AI)", "llm"),
        ("Import", "importer"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(f"Bills are stored in: **{components.storage_backend}**")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
