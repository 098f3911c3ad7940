# apptbook/main.py
from __future__ import annotations

# Load .env early so settings pick it up
from dotenv import load_dotenv
load_dotenv()

import argparse
from datetime import date as _Date
from typing import Callable, Optional, Sequence

from apptbook.core.config import Settings, settings as default_settings
from apptbook.core.errors import ConflictError, SchedulerError, log_error
from apptbook.core.logging import get_logger, setup_logging
from apptbook.db.base import Workspace, init_workspace
from apptbook.schemas.appointment import Appointment, Decision, Priority, Status
from apptbook.schemas.user import UserUpdate
from apptbook.services import queries
from apptbook.services.reports import export_csv, import_csv, summarize
from apptbook.services.session import UserSession, login, logout
from apptbook.services.slots import suggest_slots

logger = get_logger(__name__)

TABLE_HEADERS = ["ID", "BookedBy", "Date", "Time", "Min", "WithWhom", "ClientName",
                 "Reason", "Status", "Priority"]


def render_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(str(c))) for w, c in zip(widths, row)]
    lines = ["  ".join(str(c).ljust(w) for c, w in zip(headers, widths))]
    lines += ["  ".join(str(c).ljust(w) for c, w in zip(row, widths)) for row in rows]
    return "\n".join(lines)


def _appointment_row(a: Appointment) -> list[str]:
    return [str(a.id), a.booked_by, a.date, a.time, str(a.duration_min), a.with_whom,
            a.client_name, a.reason, a.status.value, a.priority.value]


def _parse_ids(text: str) -> list[int]:
    return [int(part) for part in text.replace(",", " ").split()]


class Cli:
    """Interactive menus on top of a workspace. Input and output are injectable."""

    def __init__(
        self,
        workspace: Workspace,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
        today: Optional[Callable[[], str]] = None,
    ):
        self.ws = workspace
        self.engine = workspace.engine
        self._input = input_fn
        self._say = output_fn
        self._today = today or (lambda: _Date.today().isoformat())

    # ---------- prompt helpers ----------

    def ask(self, prompt: str, default: str = "") -> str:
        answer = self._input(prompt).strip()
        return answer or default

    def ask_int(self, prompt: str, default: int) -> Optional[int]:
        answer = self.ask(prompt)
        if not answer:
            return default
        try:
            return int(answer)
        except ValueError:
            self._say(f"❌ '{answer}' is not a number.")
            return None

    def show(self, records: Sequence[Appointment], empty: str) -> None:
        if not records:
            self._say(empty)
            return
        self._say(render_table(TABLE_HEADERS, [_appointment_row(a) for a in records]))

    def fail(self, error: Exception, **context) -> None:
        log_error(error, context)
        self._say(f"❌ {error}")

    # ---------- login menu ----------

    def register(self) -> None:
        self._say("🔐 Register")
        username = self.ask("Username: ")
        password = self._input("Password: ")
        confirm = self._input("Confirm Password: ")
        full_name = self.ask("Full Name: ")
        profession = self.ask("Profession (e.g. Teacher, Client, Manager): ")
        email = self.ask("Email (optional): ")
        phone = self.ask("Phone (optional): ")
        timezone = self.ask("Timezone label (optional): ")
        try:
            self.ws.users.register(username, password, confirm, full_name, profession,
                                   email, phone, timezone)
        except SchedulerError as e:
            self.fail(e)
            return
        self._say("✅ Registered successfully.")

    def login(self) -> Optional[UserSession]:
        self._say("🔓 Login")
        username = self.ask("Username: ")
        password = self._input("Password: ")
        try:
            session = login(self.ws.users, username, password)
        except SchedulerError as e:
            self.fail(e)
            return None
        self._say(f"✅ Login successful as {session.display_name} ({session.profession})")
        unread = self.ws.notifications.unread_count(session.username)
        if unread:
            self._say(f"🔔 You have {unread} unread notification(s).")
        return session

    def login_menu(self) -> None:
        while True:
            self._say("\n===== Welcome to the Appointment Scheduler =====")
            self._say("1. Register\n2. Login\n3. Exit")
            option = self.ask("Choose option: ")
            if option == "1":
                self.register()
            elif option == "2":
                session = self.login()
                if session is not None:
                    self.main_menu(session)
            elif option == "3":
                self._say("👋 Goodbye!")
                return
            else:
                self._say("❌ Invalid choice.")

    # ---------- main menu ----------

    def main_menu(self, session: UserSession) -> None:
        actions = {
            "1": ("Book Appointment", self.book),
            "2": ("View Appointments You Booked", self.view_booked),
            "3": ("View Appointments Scheduled With You", self.view_scheduled),
            "4": ("Cancel Appointment", self.cancel),
            "5": ("Approve/Reject Appointments Scheduled With You", self.approve_reject),
            "6": ("Bulk Approve/Reject", self.bulk_approve_reject),
            "7": ("Suggest Free Slots", self.suggest),
            "8": ("Notifications", self.notifications),
            "9": ("Search Appointments", self.search),
            "10": ("Export Appointments", self.export),
            "11": ("Import Appointments", self.import_appointments),
            "12": ("Report", self.report),
            "13": ("Update Profile", self.profile),
        }
        logout_key = str(len(actions) + 1)
        while True:
            self._say(f"\n===== Appointment Scheduler - {session.display_name} ({session.profession}) =====")
            for key, (label, _) in actions.items():
                self._say(f"{key}. {label}")
            self._say(f"{logout_key}. Logout")
            choice = self.ask("Enter choice: ")
            if choice == logout_key:
                logout(session)
                self._say("👋 Logged out.")
                return
            action = actions.get(choice)
            if action is None:
                self._say("❌ Invalid choice.")
                continue
            action[1](session)

    def _offer_slots(self, session: UserSession, with_whom: str, date: str, duration: int) -> None:
        start, end = self.ws.settings.business_window
        slots = list(suggest_slots(
            self.engine.detector, date, session.username, with_whom, duration,
            business_start=start, business_end=end,
            max_results=self.ws.settings.MAX_SUGGESTIONS,
            step_minutes=self.ws.settings.SLOT_STEP_MINUTES,
        ))
        if slots:
            self._say(f"💡 Free slots on {date}: {', '.join(slots)}")
        else:
            self._say(f"💡 No free {duration}-minute slots on {date}.")

    def book(self, session: UserSession) -> None:
        self._say("📅 Book New Appointment")
        date = self.ask("Enter Date (YYYY-MM-DD): ")
        time = self.ask("Enter Time (HH:MM): ")
        self._say("Available users to book with:")
        others = self.ws.users.list_users(exclude=session.username)
        self._say(render_table(["username", "full_name", "profession"],
                               [[u.username, u.full_name, u.profession] for u in others]))
        with_whom = self.ask("Enter username of person you want to book with: ")
        duration = self.ask_int(
            f"Duration in minutes [{self.ws.settings.DEFAULT_DURATION_MIN}]: ",
            self.ws.settings.DEFAULT_DURATION_MIN,
        )
        if duration is None:
            return
        reason = self.ask("Reason for appointment: ")
        priority = self.ask("Priority (High/Medium/Low) [Medium]: ", Priority.MEDIUM.value).capitalize()
        location = self.ask("Location (optional): ")
        notes = self.ask("Notes (optional): ")
        try:
            appt = self.engine.request_booking(
                session.username, with_whom, date, time, duration_min=duration,
                reason=reason, priority=priority, location=location, notes=notes,
            )
        except ConflictError as e:
            self.fail(e)
            self._offer_slots(session, with_whom, date, duration)
            return
        except SchedulerError as e:
            self.fail(e)
            return
        self._say(f"✅ Appointment {appt.id} booked successfully (Pending).")

    def view_booked(self, session: UserSession) -> None:
        self._say("📋 Appointments You Booked:")
        self.show(queries.booked_by(self.ws.appointments, session.username),
                  "No appointments booked by you.")

    def view_scheduled(self, session: UserSession) -> None:
        self._say("📋 Appointments Scheduled With You:")
        self.show(queries.scheduled_with(self.ws.appointments, session.username),
                  "No appointments scheduled with you.")

    def cancel(self, session: UserSession) -> None:
        appointment_id = self.ask_int("Enter Appointment ID to cancel: ", 0)
        if not appointment_id:
            return
        try:
            self.engine.cancel(appointment_id, session.username)
        except SchedulerError as e:
            self.fail(e)
            return
        self._say(f"🗑️ Appointment {appointment_id} cancelled.")

    def _decide_with_override(self, appointment_id: int, actor: str, decision: Decision) -> bool:
        try:
            self.engine.decide(appointment_id, actor, decision)
        except ConflictError as e:
            self.fail(e)
            if self.ask("Approve anyway? (y/N): ").lower() != "y":
                return False
            try:
                self.engine.decide(appointment_id, actor, decision, force=True)
            except SchedulerError as e2:
                self.fail(e2)
                return False
        except SchedulerError as e:
            self.fail(e)
            return False
        return True

    def _ask_decision(self) -> Optional[Decision]:
        answer = self.ask("Approve (A) or Reject (R)? (Press ENTER to reject): ").lower()
        if answer in ("", "r"):
            return Decision.REJECT
        if answer == "a":
            return Decision.APPROVE
        self._say("❌ Invalid choice.")
        return None

    def approve_reject(self, session: UserSession) -> None:
        self._say("📝 Pending Appointments Scheduled With You:")
        pending = queries.pending_for(self.ws.appointments, session.username)
        if not pending:
            self._say("No pending appointments to approve or reject.")
            return
        self.show(pending, "")
        appointment_id = self.ask_int("Enter Appointment ID to approve/reject: ", 0)
        if not appointment_id:
            self._say("No ID entered. All pending appointments remain unchanged.")
            return
        decision = self._ask_decision()
        if decision is None:
            return
        if self._decide_with_override(appointment_id, session.username, decision):
            self._say(f"✅ Appointment {appointment_id} marked as {decision.target_status.value}.")

    def bulk_approve_reject(self, session: UserSession) -> None:
        pending = queries.pending_for(self.ws.appointments, session.username)
        self.show(pending, "No pending appointments to approve or reject.")
        if not pending:
            return
        raw = self.ask("Enter Appointment IDs (space or comma separated, * for all): ")
        if not raw:
            return
        if raw == "*":
            ids = [a.id for a in pending]
        else:
            try:
                ids = _parse_ids(raw)
            except ValueError:
                self._say("❌ IDs must be numbers.")
                return
        decision = self._ask_decision()
        if decision is None:
            return
        result = self.engine.bulk_decide(ids, session.username, decision)
        self._say(f"✅ {result.succeeded_count} marked as {decision.target_status.value}, "
                  f"{result.skipped_count} skipped.")
        for appointment_id, reason in result.skipped.items():
            self._say(f"   #{appointment_id}: {reason}")

    def suggest(self, session: UserSession) -> None:
        date = self.ask("Date (YYYY-MM-DD): ")
        with_whom = self.ask("With (username): ")
        duration = self.ask_int(
            f"Duration in minutes [{self.ws.settings.DEFAULT_DURATION_MIN}]: ",
            self.ws.settings.DEFAULT_DURATION_MIN,
        )
        if duration is None:
            return
        try:
            self._offer_slots(session, with_whom, date, duration)
        except SchedulerError as e:
            self.fail(e)

    def notifications(self, session: UserSession) -> None:
        notes = self.ws.notifications.for_user(session.username)
        if not notes:
            self._say("No notifications.")
            return
        self._say(render_table(
            ["ID", "When", "Type", "Appt", "Read", "Message"],
            [[str(n.id), n.timestamp.strftime("%Y-%m-%d %H:%M"), n.kind.value,
              str(n.appointment_id), "yes" if n.read else "no", n.message] for n in notes],
        ))
        if self.ask("Mark all as read? (y/N): ").lower() == "y":
            count = self.ws.notifications.mark_all_read(session.username)
            self._say(f"✅ {count} notification(s) marked as read.")

    def search(self, session: UserSession) -> None:
        text = self.ask("Text (blank for any): ")
        status = self.ask("Status (Pending/Approved/Rejected/Cancelled, blank for any): ").capitalize()
        date_from = self.ask("From date (blank for any): ")
        date_to = self.ask("To date (blank for any): ")
        try:
            found = queries.search(
                self.ws.appointments.load(),
                text=text or None,
                status=Status(status) if status else None,
                date_from=date_from or None,
                date_to=date_to or None,
                user=session.username,
            )
        except ValueError:
            self._say(f"❌ Unknown status '{status}'.")
            return
        self.show(found, "No matching appointments.")

    def export(self, session: UserSession) -> None:
        path = self.ask("Export to file [my_appointments.csv]: ", "my_appointments.csv")
        records = queries.search(self.ws.appointments.load(), user=session.username)
        try:
            count = export_csv(records, path)
        except OSError as e:
            self.fail(e, path=path)
            return
        self._say(f"✅ Exported {count} appointment(s) to {path}.")

    def import_appointments(self, session: UserSession) -> None:
        path = self.ask("Import from file: ")
        if not path:
            return
        try:
            result = import_csv(path, self.ws.appointments, self.ws.users)
        except FileNotFoundError:
            self._say(f"❌ File not found: {path}")
            return
        except (OSError, SchedulerError) as e:
            self.fail(e, path=path)
            return
        self._say(f"✅ Imported {len(result.imported)} appointment(s), "
                  f"{len(result.failures)} line(s) rejected.")
        for line_no, reason in result.failures.items():
            self._say(f"   line {line_no}: {reason}")

    def report(self, session: UserSession) -> None:
        summary = summarize(self.ws.appointments.load(), user=session.username)
        self._say(f"📊 Appointments involving you: {summary.total}")
        for label, counts in (("Status", summary.by_status), ("Priority", summary.by_priority)):
            self._say(f"   {label}: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
        self._say(f"   Booked minutes (live): {summary.live_minutes}")
        if summary.busiest_counterpart:
            self._say(f"   Most frequent counterpart: {summary.busiest_counterpart}")
        upcoming = queries.upcoming_for(self.ws.appointments, session.username, self._today())
        self._say("📆 Upcoming:")
        self.show(upcoming, "Nothing upcoming.")

    def profile(self, session: UserSession) -> None:
        self._say("Leave a field blank to keep it.")
        changes = UserUpdate(
            full_name=self.ask("Full Name: ") or None,
            profession=self.ask("Profession: ") or None,
            email=self.ask("Email: ") or None,
            phone=self.ask("Phone: ") or None,
            timezone=self.ask("Timezone label: ") or None,
        )
        try:
            self.ws.users.update_profile(session.username, changes)
        except SchedulerError as e:
            self.fail(e)
            return
        self._say("✅ Profile updated. Existing appointments keep the old name.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apptbook", description="Appointment scheduler")
    parser.add_argument("--data-dir", help="Directory holding the CSV files")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cfg: Settings = default_settings
    if args.data_dir:
        cfg = cfg.model_copy(update={"DATA_DIR": args.data_dir})

    debug_mode = args.debug or cfg.is_development
    setup_logging(debug=debug_mode, level=cfg.LOG_LEVEL, log_file=cfg.LOG_FILE,
                  max_log_length=cfg.MAX_LOG_LENGTH)

    try:
        workspace = init_workspace(cfg)
    except SchedulerError as e:
        log_error(e)
        print(f"❌ {e}")
        return 1
    logger.info("scheduler_started", data_dir=str(cfg.data_path))
    try:
        Cli(workspace).login_menu()
    except (EOFError, KeyboardInterrupt):
        print("\n👋 Goodbye!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
