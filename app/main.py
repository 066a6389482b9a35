"""
Streamlit Frontend for Charity Ledger

This is the user interface the charity's volunteers use daily to
record sales, expenses, consumption, bank movements and family
support payments.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. No business rules here: every derived value (arrears, running
   balances, snapshots) is computed by LedgerService
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from charity_ledger.config import get_settings, validate_all_settings
from charity_ledger.factory import AppComponents, create_app_components
from charity_ledger.models import (
    Collection,
    ItemUnit,
    PaymentType,
    ProductUnit,
    SourceType,
    TransactionType,
)
from charity_ledger.services.storage import StorageError
from charity_ledger.validation import ValidationError


# Page configuration
st.set_page_config(
    page_title="Charity Ledger",
    page_icon="🤝",
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
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def money(value: Decimal) -> str:
    return f"{get_settings().app.currency_symbol}{value:,.2f}"


def label(value) -> str:
    return value.value.replace("_", " ").title()


def save(coro, success_message: str) -> bool:
    """Run a ledger write and report the outcome to the volunteer."""
    try:
        run_async(coro)
    except ValidationError as e:
        st.error("❌ Please fix the following before saving:")
        for issue in e.issues:
            if issue.severity == "error":
                st.markdown(f"- {issue.message}")
        return False
    except StorageError as e:
        st.error(f"❌ Could not save: {e}")
        return False
    st.success(f"✅ {success_message}")
    return True


def show_warnings(components: AppComponents, collection: Collection, data: dict) -> None:
    """Non-blocking checks (future dates, overridden expected cash)."""
    result = run_async(components.ledger.check(collection, data))
    if result.warnings:
        st.warning(components.validator.get_user_friendly_summary(result))


def delete_control(components: AppComponents, collection: Collection, records, describe) -> None:
    if not records:
        return
    with st.expander("🗑️ Delete a record"):
        record = st.selectbox(
            "Record",
            options=records,
            format_func=describe,
            key=f"delete_{collection.value}",
        )
        if st.button("Delete permanently", key=f"delete_btn_{collection.value}"):
            if save(components.ledger.delete_record(collection, record.id), "Deleted"):
                st.rerun()


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("🤝 Charity Ledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏦 Bank Account",
            "🛒 Sales",
            "🧾 Expenses",
            "🍚 Consumption",
            "👪 Family Payments",
            "📊 Summary",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.caption(f"Storage: {components.backend.name}")

    if page == "🏦 Bank Account":
        render_bank_page(components)
    elif page == "🛒 Sales":
        render_sales_page(components)
    elif page == "🧾 Expenses":
        render_expenses_page(components)
    elif page == "🍚 Consumption":
        render_consumption_page(components)
    elif page == "👪 Family Payments":
        render_family_page(components)
    elif page == "📊 Summary":
        render_summary_page(components)
    elif page == "⚙️ Settings":
        render_settings_page(components)


def render_bank_page(components: AppComponents):
    """Cash movements with running balances."""
    st.title("🏦 Bank Account")
    ledger = components.ledger

    summary = run_async(components.reports.bank_account())
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Current Balance", money(summary.current_balance))
    col2.metric("Total Received", money(summary.total_cash_received))
    col3.metric("Total Withdrawn", money(summary.total_cash_withdrawn))
    col4.metric("Transactions", summary.transaction_count)

    with st.form("bank_form", clear_on_submit=True):
        st.markdown("### New Transaction")
        data = {
            "type": st.selectbox("Type", list(TransactionType), format_func=label),
            "amount": st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f"),
            "transaction_date": st.date_input("Date", value=date.today()),
            "description": st.text_input("Description"),
            "reference": st.text_input("Reference (optional)") or None,
            "notes": st.text_area("Notes (optional)") or None,
        }
        if st.form_submit_button("💾 Save Transaction"):
            data["amount"] = str(data["amount"])
            show_warnings(components, Collection.BANK_TRANSACTIONS, data)
            save(ledger.create_bank_transaction(data), "Transaction saved")

    transactions = run_async(ledger.list_bank_transactions())
    st.markdown("### History")
    if not transactions:
        st.info("No transactions yet.")
        return
    st.dataframe(
        [
            {
                "Date": t.transaction_date,
                "Type": label(t.type),
                "Amount": money(t.amount),
                "Balance": money(t.running_balance),
                "Description": t.description,
                "Reference": t.reference or "",
            }
            for t in reversed(transactions)
        ],
        use_container_width=True,
    )
    delete_control(
        components,
        Collection.BANK_TRANSACTIONS,
        list(reversed(transactions)),
        lambda t: f"{t.transaction_date} · {label(t.type)} · {money(t.amount)}",
    )
    if st.button("🔄 Recalculate balances"):
        fixed = run_async(ledger.recalculate_running_balances())
        st.success(f"✅ {fixed} balance(s) corrected")


def render_sales_page(components: AppComponents):
    """Products and sales with arrears."""
    st.title("🛒 Sales")
    ledger = components.ledger
    products = run_async(ledger.list_products())

    with st.expander("➕ Add Product"):
        with st.form("product_form", clear_on_submit=True):
            data = {
                "name": st.text_input("Product name"),
                "unit": st.selectbox("Unit", list(ProductUnit), format_func=label),
                "sale_price": str(st.number_input("Sale price", min_value=0.0, format="%.2f")),
                "quantity": str(st.number_input("Quantity", min_value=0.0, format="%.3f")),
                "buying_date": st.date_input("Buying date", value=date.today()),
            }
            if st.form_submit_button("💾 Save Product"):
                if save(ledger.create_product(data), "Product saved"):
                    st.rerun()

    if not products:
        st.info("Add a product before recording sales.")
    else:
        with st.form("sale_form", clear_on_submit=True):
            st.markdown("### New Sale")
            product = st.selectbox("Product", products, format_func=lambda p: p.name)
            col1, col2, col3 = st.columns(3)
            before = col1.number_input("Weight before sale (kg)", min_value=0.0, format="%.3f")
            after = col2.number_input("Weight after sale (kg)", min_value=0.0, format="%.3f")
            price = col3.number_input(
                "Price per kg", min_value=0.0, value=float(product.sale_price), format="%.2f"
            )
            col1, col2, col3, col4 = st.columns(4)
            received = col1.number_input("Received cash", min_value=0.0, format="%.2f")
            topup = col2.number_input("Top-up", min_value=0.0, format="%.2f")
            charity = col3.number_input("Charity", min_value=0.0, format="%.2f")
            credit = col4.number_input("Credit", min_value=0.0, format="%.2f")
            sale_date = st.date_input("Sale date", value=date.today())

            if st.form_submit_button("💾 Save Sale"):
                data = {
                    "product_id": product.id,
                    "weight_before_sale": str(before),
                    "weight_after_sale": str(after),
                    "price_per_kg": str(price),
                    "received_cash": str(received),
                    "topup": str(topup),
                    "charity": str(charity),
                    "credit": str(credit),
                    "sale_date": sale_date,
                }
                show_warnings(components, Collection.SALES, data)
                save(ledger.create_sale(data), "Sale saved")

    rows = run_async(components.reports.sales())
    st.markdown("### Sales")
    if not rows:
        st.info("No sales yet.")
        return
    st.dataframe(
        [
            {
                "Date": r.sale_date,
                "Product": r.product_name,
                "Weight (kg)": r.weight,
                "Expected": money(r.expected_cash),
                "Received": money(r.total_received),
                "Arrears": money(r.arrears),
            }
            for r in rows
        ],
        use_container_width=True,
    )
    sales = run_async(ledger.list_sales())
    delete_control(
        components,
        Collection.SALES,
        sales,
        lambda s: f"{s.sale_date} · {s.weight} kg · {money(s.expected_cash)}",
    )


def render_expenses_page(components: AppComponents):
    """General purchases and miscellaneous expenses."""
    st.title("🧾 Expenses")
    ledger = components.ledger
    general_tab, misc_tab = st.tabs(["General", "Miscellaneous"])

    with general_tab:
        with st.form("expense_form", clear_on_submit=True):
            data = {
                "name": st.text_input("Item"),
                "unit": st.selectbox("Unit", list(ItemUnit), format_func=label),
                "price": str(st.number_input("Price", min_value=0.0, format="%.2f")),
                "quantity": str(st.number_input("Quantity", min_value=0.0, value=1.0, format="%.3f")),
                "expense_date": st.date_input("Date", value=date.today()),
                "notes": st.text_area("Notes (optional)") or None,
            }
            if st.form_submit_button("💾 Save Expense"):
                save(ledger.create_general_expense(data), "Expense saved")

        expenses = run_async(ledger.list_general_expenses())
        if expenses:
            st.dataframe(
                [
                    {
                        "Date": e.expense_date,
                        "Item": e.name,
                        "Quantity": f"{e.quantity} {e.unit.value}",
                        "Total": money(e.total_cost),
                    }
                    for e in expenses
                ],
                use_container_width=True,
            )
        delete_control(
            components,
            Collection.EXPENSES,
            expenses,
            lambda e: f"{e.expense_date} · {e.name} · {money(e.total_cost)}",
        )

    with misc_tab:
        with st.form("misc_form", clear_on_submit=True):
            data = {
                "name": st.text_input("Description"),
                "price": str(st.number_input("Price", min_value=0.0, format="%.2f")),
                "quantity": str(st.number_input("Quantity", min_value=0.0, value=1.0)),
                "expense_date": st.date_input("Date", value=date.today()),
                "notes": st.text_area("Notes (optional)") or None,
            }
            if st.form_submit_button("💾 Save Expense"):
                save(ledger.create_misc_expense(data), "Expense saved")

        misc = run_async(ledger.list_misc_expenses())
        if misc:
            st.dataframe(
                [
                    {"Date": e.expense_date, "Description": e.name, "Total": money(e.total_cost)}
                    for e in misc
                ],
                use_container_width=True,
            )
        delete_control(
            components,
            Collection.MISC_EXPENSES,
            misc,
            lambda e: f"{e.expense_date} · {e.name} · {money(e.total_cost)}",
        )


def render_consumption_page(components: AppComponents):
    """Items used up, optionally taken from a purchase or custom item."""
    st.title("🍚 Consumption")
    ledger = components.ledger
    expenses = run_async(ledger.list_general_expenses())
    custom_items = run_async(ledger.list_custom_items())

    with st.expander("➕ Add Custom Item"):
        with st.form("custom_item_form", clear_on_submit=True):
            data = {
                "name": st.text_input("Name"),
                "unit": st.selectbox("Unit", list(ItemUnit), format_func=label),
            }
            if st.form_submit_button("💾 Save Item"):
                if save(ledger.create_custom_item(data), "Custom item saved"):
                    st.rerun()

    source_type = st.radio(
        "Taken from", list(SourceType), format_func=label, horizontal=True
    )
    sources = expenses if source_type == SourceType.GENERAL_EXPENSE else custom_items

    with st.form("consumed_form", clear_on_submit=True):
        source = st.selectbox(
            "Source (optional)",
            [None] + sources,
            format_func=lambda s: "None" if s is None else s.name,
        )
        data = {
            "item_name": st.text_input("Item name (leave blank to use the source name)"),
            "quantity": str(st.number_input("Quantity", min_value=0.0, value=1.0, format="%.3f")),
            "consumption_date": st.date_input("Date", value=date.today()),
            "notes": st.text_area("Notes (optional)") or None,
            "source_type": source_type,
        }
        if st.form_submit_button("💾 Save"):
            if source is not None:
                data["source_id"] = source.id
                data["item_name"] = data["item_name"] or source.name
            save(ledger.create_consumed_item(data), "Consumption saved")

    consumed = run_async(ledger.list_consumed_items())
    if consumed:
        st.dataframe(
            [
                {
                    "Date": c.consumption_date,
                    "Item": c.item_name,
                    "Quantity": f"{c.quantity} {c.unit.value}",
                    "Cost": money(c.total_cost),
                }
                for c in consumed
            ],
            use_container_width=True,
        )
    delete_control(
        components,
        Collection.CONSUMED_ITEMS,
        consumed,
        lambda c: f"{c.consumption_date} · {c.item_name}",
    )


def render_family_page(components: AppComponents):
    """Support payments to families."""
    st.title("👪 Family Payments")
    ledger = components.ledger

    summary = run_async(components.reports.family_payments())
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Paid This Month", money(summary.total_paid_this_month))
    col2.metric("Paid This Year", money(summary.total_paid_this_year))
    col3.metric("Active Families", summary.active_family_members)
    col4.metric("Upcoming Payments", summary.upcoming_payments)

    with st.expander("➕ Add Family"):
        with st.form("member_form", clear_on_submit=True):
            data = {
                "name": st.text_input("Name"),
                "relationship": st.text_input("Relationship"),
                "monthly_amount": str(st.number_input("Monthly amount", min_value=0.0, format="%.2f")),
                "payment_day": st.number_input("Payment day", min_value=1, max_value=31, value=1),
                "is_active": st.checkbox("Active", value=True),
            }
            if st.form_submit_button("💾 Save Family"):
                if save(ledger.create_family_member(data), "Family saved"):
                    st.rerun()

    members = run_async(ledger.list_family_members())
    with st.form("payment_form", clear_on_submit=True):
        st.markdown("### New Payment")
        data = {
            "family_member_name": st.selectbox(
                "Family", [m.name for m in members if m.is_active] or [""]
            ),
            "amount": str(st.number_input("Amount", min_value=0.0, format="%.2f")),
            "payment_date": st.date_input("Date", value=date.today()),
            "payment_type": st.selectbox("Type", list(PaymentType), format_func=label),
            "description": st.text_input("Description"),
            "is_recurring": st.checkbox("Recurring"),
        }
        if st.form_submit_button("💾 Save Payment"):
            show_warnings(components, Collection.FAMILY_PAYMENTS, data)
            save(ledger.create_family_payment(data), "Payment saved")

    payments = run_async(ledger.list_family_payments())
    if payments:
        st.dataframe(
            [
                {
                    "Date": p.payment_date,
                    "Family": p.family_member_name,
                    "Type": label(p.payment_type),
                    "Amount": money(p.amount),
                }
                for p in payments
            ],
            use_container_width=True,
        )
    delete_control(
        components,
        Collection.FAMILY_PAYMENTS,
        payments,
        lambda p: f"{p.payment_date} · {p.family_member_name} · {money(p.amount)}",
    )


def render_summary_page(components: AppComponents):
    """Today, this month and all-time profit."""
    st.title("📊 Summary")
    report = run_async(components.reports.summary())

    for heading, revenue, cost, profit in (
        (
            "Today",
            report.today.sales_revenue if report.today else Decimal("0"),
            report.today.total_cost if report.today else Decimal("0"),
            report.today.profit if report.today else Decimal("0"),
        ),
        ("This Month", report.month.sales_revenue, report.month.total_cost, report.month.profit),
        (
            "All Time",
            report.overall.total_sales_revenue,
            report.overall.total_cost,
            report.overall.total_profit,
        ),
    ):
        st.markdown(f"### {heading}")
        col1, col2, col3 = st.columns(3)
        col1.metric("Revenue", money(revenue))
        col2.metric("Cost", money(cost))
        col3.metric("Profit", money(profit))

    st.markdown("### Daily Breakdown")
    if not report.daily:
        st.info("No activity recorded yet.")
        return
    st.dataframe(
        [
            {
                "Date": s.day,
                "Sales Revenue": money(s.sales_revenue),
                "Consumption Cost": money(s.consumption_cost),
                "Expense Cost": money(s.expense_cost),
                "Total Cost": money(s.total_cost),
                "Profit": money(s.profit),
            }
            for s in report.daily
        ],
        use_container_width=True,
    )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Storage")
    st.info(f"Active backend: **{components.backend.name}**")

    status = validate_all_settings()
    for name, key in (
        ("Application", "app"),
        ("Storage selection", "storage"),
        ("Local files", "local_storage"),
        ("Google Sheets", "google_sheets"),
    ):
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
