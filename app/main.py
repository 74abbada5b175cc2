"""
Streamlit Frontend for the Finance Tracker

A thin page over the receipt pipeline and the transaction services.
It renders progress, extracted data and summaries; all behavior lives
in the finance_tracker package.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before a receipt becomes a transaction
3. One plain-language message per failure
4. Visual feedback for every step of an upload
"""

import asyncio
from datetime import date, timedelta

import streamlit as st

from finance_tracker.auth import AuthContext, TokenVerifier, create_access_token
from finance_tracker.config import get_settings, validate_all_settings
from finance_tracker.errors import ReceiptPipelineError
from finance_tracker.models import ReceiptFile, TransactionDraft, TransactionType
from finance_tracker.orchestrator import ProgressReporter, create_app_components
from finance_tracker.transactions import draft_from_receipt


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
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
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def get_auth_context():
    """The signed-in user's context, or None."""
    return st.session_state.get("auth_context")


def render_sign_in():
    st.sidebar.markdown("### Sign in")
    token = st.sidebar.text_input("Access token", type="password")
    if st.sidebar.button("Sign in", disabled=not token):
        try:
            st.session_state.auth_context = TokenVerifier().verify(token)
            st.rerun()
        except ReceiptPipelineError as e:
            st.sidebar.error(e.user_message)

    if get_settings().app.debug_mode:
        user_id = st.sidebar.text_input("Development user id", value="dev-user")
        if st.sidebar.button("Use development identity"):
            token = create_access_token(user_id)
            st.session_state.auth_context = AuthContext(user_id=user_id, access_token=token)
            st.rerun()


def main():
    """Main application entry point."""
    upload_flow, transaction_service, summary_executor = get_components()

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    ctx = get_auth_context()
    if ctx is None:
        render_sign_in()
        st.info("Please sign in to continue.")
        return

    st.sidebar.caption(f"Signed in as {ctx.user_id}")
    if st.sidebar.button("Sign out"):
        del st.session_state["auth_context"]
        st.rerun()

    page = st.sidebar.radio(
        "Navigate to:",
        ["📤 Upload Receipt", "➕ Transactions", "📊 Dashboard", "⚙️ Settings"],
        index=0,
    )

    if page == "📤 Upload Receipt":
        render_upload_page(ctx, upload_flow, transaction_service)
    elif page == "➕ Transactions":
        render_transactions_page(ctx, transaction_service)
    elif page == "📊 Dashboard":
        render_dashboard_page(ctx, summary_executor)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_upload_page(ctx, upload_flow, transaction_service):
    """Render the receipt upload page."""
    st.title("📤 Upload Receipt")
    st.markdown("Upload a photo or PDF of a receipt. We'll read it for you.")

    uploaded_file = st.file_uploader(
        "Choose a receipt",
        type=["jpg", "jpeg", "png", "webp", "pdf"],
    )

    if uploaded_file and st.button("🔍 Process Receipt", type="primary"):
        bar = st.progress(0, text="Uploading...")
        progress = ProgressReporter(lambda value: bar.progress(value))

        content = uploaded_file.getvalue()
        receipt_file = ReceiptFile(
            file_name=uploaded_file.name,
            media_type=uploaded_file.type or "",
            size_bytes=len(content),
            content=content,
        )
        try:
            extracted = run_async(upload_flow.submit_receipt(ctx, receipt_file, progress))
        except ReceiptPipelineError as e:
            st.error(e.user_message)
            return

        st.session_state.extracted = extracted
        st.session_state.extracted_receipt_id = progress.receipt_id

    extracted = st.session_state.get("extracted")
    if extracted is None:
        return

    st.markdown("---")
    st.subheader("📋 Extracted Data")
    col1, col2, col3 = st.columns(3)
    col1.metric("Merchant", extracted.merchant)
    col2.metric("Total", f"{extracted.total}")
    col3.metric("Date", extracted.date.isoformat())

    if extracted.items:
        st.table([{"Item": i.name, "Price": str(i.price)} for i in extracted.items])
    else:
        st.caption("No line items were found.")

    categories = run_async(transaction_service.list_categories(TransactionType.EXPENSE))
    category = st.selectbox(
        "Category",
        options=categories,
        format_func=lambda c: c.name,
    )
    if st.button("✅ Save as Expense", type="primary"):
        draft = draft_from_receipt(
            extracted,
            category_id=category.id,
            receipt_id=st.session_state.get("extracted_receipt_id"),
        )
        try:
            run_async(transaction_service.create_transaction(ctx, draft))
        except ReceiptPipelineError as e:
            st.error(e.user_message)
            return
        st.success("Expense saved.")
        st.session_state.extracted = None


def render_transactions_page(ctx, transaction_service):
    """Render the add/list transactions page."""
    st.title("➕ Transactions")

    transaction_type = st.radio(
        "Type",
        options=list(TransactionType),
        format_func=lambda t: t.value.title(),
        horizontal=True,
    )
    categories = run_async(transaction_service.list_categories(transaction_type))

    with st.form("new_transaction"):
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
        category = st.selectbox("Category", options=categories, format_func=lambda c: c.name)
        description = st.text_input("Description", max_chars=500)
        when = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("Add Transaction")

    if submitted:
        draft = TransactionDraft(
            type=transaction_type,
            amount=round(amount, 2),
            description=description,
            category_id=category.id,
            date=when,
        )
        try:
            run_async(transaction_service.create_transaction(ctx, draft))
            st.success("Transaction added.")
        except ReceiptPipelineError as e:
            st.error(e.user_message)

    st.markdown("---")
    names = {c.id: c.name for c in run_async(transaction_service.list_categories())}
    transactions = run_async(transaction_service.list_transactions(ctx, limit=50))
    if not transactions:
        st.info("No transactions yet.")
        return
    st.table([
        {
            "Date": t.date.isoformat(),
            "Type": t.type.value.title(),
            "Category": names.get(t.category_id, "Uncategorized"),
            "Description": t.description,
            "Amount": str(t.amount),
        }
        for t in transactions
    ])


def render_dashboard_page(ctx, summary_executor):
    """Render the summary dashboard."""
    st.title("📊 Dashboard")

    days = st.selectbox("Time range", options=[7, 30, 90, 365], index=1, format_func=lambda d: f"Last {d} days")
    summary = run_async(summary_executor.summarize(ctx, date_from=date.today() - timedelta(days=days)))

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", f"{summary.total_income}")
    col2.metric("Expenses", f"{summary.total_expenses}")
    col3.metric("Net Balance", f"{summary.net_balance}")

    if summary.transaction_count == 0:
        st.info("No transactions in this range.")
        return

    st.subheader("Expenses by Category")
    st.bar_chart(
        [{"category": c.name, "amount": float(c.value)} for c in summary.spending_by_category],
        x="category",
        y="amount",
    )

    st.subheader("Monthly Comparison")
    st.bar_chart(
        [
            {"month": m.month, "income": float(m.income), "expenses": float(m.expenses)}
            for m in summary.monthly_comparison
        ],
        x="month",
        y=["income", "expenses"],
    )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Cloudinary (Receipt Files)", "cloudinary"),
        ("Mindee (OCR)", "mindee"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Authentication", "auth"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "Services that are not configured fall back to in-memory storage."
    )


if __name__ == "__main__":
    main()
