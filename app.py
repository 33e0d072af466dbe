"""
app.py
Streamlit gym membership manager (single user).
Run: streamlit run app.py
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import date

import pandas as pd
import streamlit as st

import config
import db
import reports
import store
import utils
from errors import CheckInBlocked, GymError, ValidationError
from models import (
    PAYMENT_METHOD_LABELS,
    STATUS_LABELS,
    Gender,
    MemberStatus,
    PaymentMethod,
    PaymentStatus,
    StatusModel,
    SubscriptionType,
)
from status import check_in_block_reason, next_renewal_date

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Gym Membership Manager", layout="wide")

PAGES = ["Dashboard", "Members", "Add Member", "Payments", "Check-In", "Reports", "Settings"]


def status_options() -> list[str]:
    if config.STATUS_MODEL is StatusModel.EXPIRY:
        states = [MemberStatus.ACTIVE, MemberStatus.EXPIRING_SOON, MemberStatus.EXPIRED]
    else:
        states = [MemberStatus.ACTIVE, MemberStatus.DUE, MemberStatus.OVERDUE]
    return [s.value for s in states]


def init_once():
    # Initialize DB + default settings if needed
    if not st.session_state.get("db_ready"):
        config.configure_logging()
        db.init_db()
        st.session_state.db_ready = True


def show_error(exc: GymError):
    if isinstance(exc, ValidationError):
        for e in exc.errors:
            st.error(e)
    else:
        st.error(str(exc))


def members_df(members) -> pd.DataFrame:
    columns = ["id", "full_name", "phone", "email", "subscription_type", "subscription_fee",
               "renewal_date", "status", "payment_status", "last_check_in"]
    if not members:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([m.to_dict() for m in members])[columns]
    df["status"] = [STATUS_LABELS[m.status] for m in members]
    return df


def days_chart(df: pd.DataFrame) -> pd.DataFrame:
    return df.assign(day=df["day"].astype(str)).set_index("day")


def member_label(m) -> str:
    return f"{m.full_name} ({m.phone}) - ID {m.id}"


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    store.refresh_member_statuses()
    settings = store.get_settings()
    st.caption(settings.gym_name)

    members = store.list_members()
    stats = reports.dashboard_stats(members, store.list_payments(), store.list_check_ins())

    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Total members", stats["total_members"])
    c2.metric("Active", stats["active"])
    c3.metric("Due / expiring", stats["due"])
    c4.metric("Overdue / expired", stats["lapsed"])
    c5.metric("Revenue (current month)", f"{stats['monthly_revenue']:.2f}")
    st.caption(f"Check-ins today: {stats['check_ins_today']}")

    st.divider()

    st.subheader(f"Upcoming renewals (next {config.DUE_WINDOW_DAYS} days)")
    if stats["upcoming_renewals"]:
        st.dataframe(members_df(stats["upcoming_renewals"]), use_container_width=True, hide_index=True)
    else:
        st.caption("No upcoming renewals.")

    st.subheader("Check-ins (last 7 days)")
    st.bar_chart(days_chart(reports.check_ins_per_day(store.list_check_ins())))


def member_form(existing=None):
    settings = store.get_settings()
    types = [t.value for t in SubscriptionType]

    col1, col2, col3 = st.columns(3)
    with col1:
        full_name = st.text_input("Full name", value=(existing.full_name if existing else ""))
        phone = st.text_input("Phone", value=(existing.phone if existing else ""))
        email = st.text_input("Email (optional)", value=((existing.email or "") if existing else ""))

    with col2:
        genders = [g.value for g in Gender]
        gender = st.selectbox("Gender", genders, index=(genders.index(existing.gender.value) if existing else 0))
        start_date = st.date_input("Start date", value=(existing.start_date if existing else date.today()))

    with col3:
        subscription_type = st.selectbox(
            "Subscription type",
            options=types,
            index=(types.index(existing.subscription_type.value) if existing else types.index("monthly")),
        )
        default_fee = existing.subscription_fee if existing else settings.default_fee(subscription_type)
        subscription_fee = st.text_input("Subscription fee", value=str(default_fee))
        payment_statuses = [p.value for p in PaymentStatus]
        payment_status = st.selectbox(
            "Payment",
            payment_statuses,
            index=(payment_statuses.index(existing.payment_status.value) if existing else 0),
        )

    if existing:
        st.caption(f"Renewal date: **{existing.renewal_date}** (advanced by recording payments)")
    else:
        st.info(f"Renewal date: **{next_renewal_date(start_date, subscription_type)}**")

    if st.button("Save", type="primary"):
        try:
            if existing:
                store.update_member(
                    existing.id,
                    full_name=full_name,
                    phone=phone,
                    email=email or None,
                    gender=gender,
                    start_date=start_date,
                    subscription_type=subscription_type,
                    subscription_fee=subscription_fee,
                    payment_status=payment_status,
                )
                st.success("Member updated.")
            else:
                store.add_member(
                    full_name, phone, gender, start_date, subscription_type, subscription_fee,
                    email=email or None, payment_status=payment_status,
                )
                st.success("Member added.")
            st.session_state.edit_member_id = None
            st.rerun()
        except GymError as exc:
            show_error(exc)


def add_member_page():
    st.header("➕ Add Member")
    member_form(existing=None)


def members_page():
    st.header("👥 Members")

    store.refresh_member_statuses()

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone/email)")
        status_filter = st.selectbox("Status", ["all"] + status_options())
        sort_renewal = st.checkbox("Sort by renewal date", value=False)

    members = store.list_members(
        search=search, status_filter=status_filter, order_by=("renewal_date" if sort_renewal else "full_name")
    )
    st.dataframe(members_df(members), use_container_width=True, hide_index=True)

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select member")
        selected_id = st.selectbox("Member ID", options=["(none)"] + [str(m.id) for m in members])

    with colB:
        if selected_id != "(none)":
            st.subheader("Member actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_member_id = int(selected_id)
                    st.rerun()
            with c2:
                if st.button("View payments"):
                    st.session_state.payments_member_id = int(selected_id)
                    st.session_state.page = "Payments"
                    st.rerun()
            with c3:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    try:
                        store.delete_member(int(selected_id))
                        st.success("Member deleted.")
                        st.rerun()
                    except GymError as exc:
                        show_error(exc)

    if st.session_state.get("edit_member_id"):
        st.divider()
        st.subheader(f"✏️ Edit Member (ID: {st.session_state.edit_member_id})")
        try:
            member_form(existing=store.get_member(st.session_state.edit_member_id))
        except GymError as exc:
            show_error(exc)
        if st.button("Cancel edit"):
            st.session_state.edit_member_id = None
            st.rerun()


def payments_page():
    st.header("💳 Payments")

    store.refresh_member_statuses()

    members = store.list_members()
    if not members:
        st.info("No members yet. Add a member first.")
        return

    options = {member_label(m): m for m in members}
    label_list = list(options.keys())
    default_member_id = st.session_state.get("payments_member_id")
    default_index = next((i for i, m in enumerate(members) if m.id == default_member_id), 0)
    member = options[st.selectbox("Member", label_list, index=default_index)]
    st.session_state.payments_member_id = member.id

    st.write(
        f"Plan: **{member.subscription_type.value}** | Fee: **{member.subscription_fee}** | "
        f"Renewal: **{member.renewal_date}** | Status: **{STATUS_LABELS[member.status]}**"
    )

    st.subheader("Record payment")
    c1, c2, c3 = st.columns(3)
    with c1:
        amount = st.text_input("Amount", value=str(member.subscription_fee))
        methods = [m.value for m in PaymentMethod]
        method = st.selectbox(
            "Method", methods, format_func=lambda v: PAYMENT_METHOD_LABELS[PaymentMethod(v)]
        )
    with c2:
        pay_date = st.date_input("Date", value=date.today())
        period = st.text_input(
            "Renewal period", value=utils.renewal_period_label(pay_date, member.subscription_type)
        )
    with c3:
        notes = st.text_input("Notes", value="")

    if st.button("Record payment", type="primary"):
        try:
            store.record_payment(member.id, amount, method, pay_date, renewal_period=period, notes=notes)
            st.success("Payment recorded.")
            st.rerun()
        except GymError as exc:
            show_error(exc)

    st.divider()

    st.subheader("Payment history")
    rows = store.get_member_payments(member.id)
    if rows:
        st.dataframe(pd.DataFrame([p.to_dict() for p in rows]), use_container_width=True, hide_index=True)
    else:
        st.caption("No payments for this member yet.")

    st.divider()

    st.subheader("All payments")
    pay_search = st.text_input("Search payments (member/period)")
    all_rows = store.list_payments(search=pay_search)
    if all_rows:
        st.dataframe(utils.payments_frame(all_rows, members), use_container_width=True, hide_index=True)
    else:
        st.caption("No payments match.")


def check_in_page():
    st.header("✅ Check-In")

    query = st.text_input("Search member (name/phone/email)")
    if len(query.strip()) >= 2:
        store.refresh_member_statuses()
        results = store.search_members(query)
        if not results:
            st.caption("No members found.")
        for m in results:
            reason = check_in_block_reason(m)
            c1, c2, c3 = st.columns([3, 2, 1])
            c1.write(f"**{m.full_name}** · {m.phone}")
            c2.write(f"{STATUS_LABELS[m.status]} · payment {m.payment_status.value}")
            if c3.button("Check in", key=f"checkin_{m.id}", disabled=reason is not None):
                try:
                    store.check_in(m.id)
                    st.success(f"{m.full_name} checked in successfully.")
                except CheckInBlocked as exc:
                    st.error(str(exc))
                except GymError as exc:
                    show_error(exc)
            if reason:
                c1.caption(f"Check-in blocked: {reason}")

    st.divider()

    st.subheader("Recent check-ins")
    recent = store.get_recent_check_ins(5)
    if recent:
        st.dataframe(pd.DataFrame(recent), use_container_width=True, hide_index=True)
    else:
        st.caption("No check-ins yet.")


def reports_page():
    st.header("🧾 Reports")

    store.refresh_member_statuses()
    members = store.list_members()
    payments = store.list_payments()
    check_ins = store.list_check_ins()

    today = date.today()
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=today.replace(day=1))
    with col2:
        end = st.date_input("To", value=today)

    st.metric("Revenue in range", f"{reports.revenue_between(payments, start, end):.2f}")

    c1, c2 = st.columns(2)
    with c1:
        st.subheader("Revenue by subscription type")
        st.dataframe(reports.revenue_by_subscription_type(payments, start, end), hide_index=True)
    with c2:
        st.subheader("Revenue by payment method")
        st.dataframe(reports.revenue_by_method(payments, start, end), hide_index=True)

    st.divider()

    st.subheader("Revenue by month (last 12 months)")
    st.bar_chart(reports.monthly_revenue(payments, today=today).set_index("month"))

    c1, c2, c3 = st.columns(3)
    with c1:
        st.subheader("Member status")
        counts = reports.status_counts(members)
        st.dataframe(
            pd.DataFrame({"status": status_options(), "members": [counts[s] for s in status_options()]}),
            hide_index=True,
        )
    with c2:
        st.subheader("Membership types")
        st.dataframe(reports.membership_type_counts(members), hide_index=True)
    with c3:
        st.subheader("Payment methods")
        st.dataframe(reports.payment_method_counts(payments), hide_index=True)

    st.subheader("Check-ins (last 7 days)")
    st.bar_chart(days_chart(reports.check_ins_per_day(check_ins, today=today)))

    st.subheader(f"Upcoming renewals (next {config.UPCOMING_RENEWALS_DAYS} days)")
    upcoming = reports.upcoming_renewals(members, today=today, limit=10)
    if upcoming:
        st.dataframe(members_df(upcoming), use_container_width=True, hide_index=True)
    else:
        st.caption("No upcoming renewals.")

    st.divider()

    st.subheader("Export")
    if members or payments:
        st.download_button(
            "Download report CSV",
            data=utils.report_to_csv_bytes(members, payments),
            file_name=utils.report_file_name(today),
            mime="text/csv",
        )
    else:
        st.caption("Nothing to export yet.")


def pin_gate(settings) -> bool:
    if not settings.pin_code or st.session_state.get("settings_unlocked"):
        return True
    st.info("Enter the PIN to open settings.")
    entered = st.text_input("PIN", type="password")
    if st.button("Unlock", type="primary"):
        if store.verify_pin(settings, entered):
            st.session_state.settings_unlocked = True
            st.rerun()
        else:
            st.error("Incorrect PIN.")
    return False


def settings_page():
    st.header("⚙️ Settings")

    settings = store.get_settings()
    if not pin_gate(settings):
        return

    st.subheader("Gym details")
    col1, col2 = st.columns(2)
    with col1:
        gym_name = st.text_input("Gym name", value=settings.gym_name)
        contact_phone = st.text_input("Contact phone", value=settings.contact_phone or "")
        contact_email = st.text_input("Contact email", value=settings.contact_email or "")
        address = st.text_input("Address", value=settings.address or "")
    with col2:
        fees = {}
        for t in SubscriptionType:
            fees[f"default_{t.value}_fee"] = st.number_input(
                f"Default {t.value} fee", min_value=0.0, value=settings.default_fee(t), step=100.0
            )
        pin_code = st.text_input("PIN (leave blank to keep current)", type="password")

    if st.button("Save settings", type="primary"):
        fields = dict(
            gym_name=gym_name,
            contact_phone=contact_phone.strip() or None,
            contact_email=contact_email.strip() or None,
            address=address.strip() or None,
            **fees,
        )
        if pin_code:
            fields["pin_code"] = pin_code
        try:
            store.save_settings(**fields)
            st.success("Settings saved.")
            st.rerun()
        except GymError as exc:
            show_error(exc)

    logo = st.file_uploader("Logo", type=["png", "jpg", "jpeg"])
    if logo is not None and st.button("Upload logo"):
        encoded = base64.b64encode(logo.getvalue()).decode("ascii")
        try:
            store.set_logo(f"data:{logo.type};base64,{encoded}")
            st.success("Logo uploaded.")
        except GymError as exc:
            show_error(exc)
    if settings.logo:
        image = utils.decode_logo(settings.logo)
        if image is None:
            st.warning("The stored logo cannot be displayed. Upload a new one.")
        else:
            st.image(image, width=120)

    st.divider()

    st.subheader("Data")
    collections = store.export_collections()
    st.download_button(
        "Download JSON backup",
        data=utils.backup_to_json_bytes(
            collections["members"], collections["payments"], collections["check_ins"], collections["settings"]
        ),
        file_name=utils.backup_file_name(),
        mime="application/json",
    )

    backup = st.file_uploader("Restore from JSON backup", type=["json"])
    if backup is not None and st.button("Restore"):
        try:
            counts = store.restore_backup(json.loads(backup.getvalue()))
            st.success(f"Restored {counts['members']} members and {counts['payments']} payments.")
            st.rerun()
        except json.JSONDecodeError:
            st.error("Backup file is not valid JSON.")
        except GymError as exc:
            show_error(exc)

    if st.button("Insert sample data"):
        store.insert_sample_data()
        st.success("Sample data inserted.")
        st.rerun()

    clear_confirm = st.checkbox("I understand this cannot be undone", value=False)
    if st.button("Clear all data", disabled=not clear_confirm):
        store.clear_all_data()
        st.success("All data cleared.")
        st.rerun()


def main_app():
    st.sidebar.title("🏋️ Gym Manager")

    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(st.session_state.page))

    if st.session_state.page != "Settings":
        st.session_state.settings_unlocked = False

    try:
        if st.session_state.page == "Dashboard":
            dashboard_page()
        elif st.session_state.page == "Members":
            members_page()
        elif st.session_state.page == "Add Member":
            add_member_page()
        elif st.session_state.page == "Payments":
            payments_page()
        elif st.session_state.page == "Check-In":
            check_in_page()
        elif st.session_state.page == "Reports":
            reports_page()
        elif st.session_state.page == "Settings":
            settings_page()
    except GymError as exc:
        logger.error("Page %s failed: %s", st.session_state.page, exc)
        st.error("Something went wrong. Please try again.")


# --------- App entry ---------

def run():
    init_once()
    main_app()


if __name__ == "__main__":
    run()
