"""
yarmtl - markdown todo list with git history and email reminders

Usage:
    yarmtl add <text>
    yarmtl list [--done] [--tag TAG ...] [--grouped]
    yarmtl toggle <id>
    yarmtl delete <id>
    yarmtl update <id> [options]
    yarmtl due
    yarmtl email
    yarmtl setup-email
    yarmtl daemon
    yarmtl serve [--port PORT]

Task text syntax:
    !2025-10-01 / !today / !tomorrow   deadline
    @2025-09-30 / @today               reminder
    #work                              tag (repeatable)
    $1 .. $5                           importance
    //anything after this              notes
    <- text (at the start)             subtask of the last top-level task

Examples:
    yarmtl add "Submit report !2025-10-01 #work"
    yarmtl add "Call dentist !tomorrow @today #personal //ask about x-ray"
    yarmtl add "<- Find insurance card"
    yarmtl list --tag work
    yarmtl update a1b2c3d4 --deadline friday --importance 2
    yarmtl --path ~/notes daemon
"""

import argparse
import logging
import smtplib
import sys
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from yarmtl.config import (
    ConfigError,
    Settings,
    load_email_config,
    load_settings,
    write_email_config_template,
)
from yarmtl.errors import ParseError, ParseErrorKind, StoreError
from yarmtl.models.patch import TaskPatch
from yarmtl.models.task import Task
from yarmtl.notify.mailer import EmailNotifier
from yarmtl.scheduler.daemon import ReminderDaemon
from yarmtl.scheduler.queries import compose_reminders, group_by_deadline
from yarmtl.store.task_store import TaskStore
from yarmtl.utils.dates import format_date, resolve_date
from yarmtl.versioning.git import GitVersioning

log = logging.getLogger(__name__)


# --- helpers ---

def _make_versioning(settings: Settings) -> Optional[GitVersioning]:
    if not settings.git_enabled:
        return None
    return GitVersioning(settings.working_dir, push=settings.push_enabled)


def _open_store(args) -> TaskStore:
    return TaskStore.load(args.settings.tasks_file, versioning=_make_versioning(args.settings))


def _describe(task: Task, today: date) -> str:
    """One list line: id, checkbox, description, then metadata."""
    checkbox = "[x]" if task.done else "[ ]"
    parts = [task.id, checkbox, task.description]

    if task.deadline is not None:
        deadline = f"!{format_date(task.deadline)}"
        if not task.done and task.is_overdue(today):
            deadline += " (overdue)"
        elif not task.done and task.is_due_today(today):
            deadline += " (due today)"
        parts.append(deadline)
    parts.extend(f"#{tag}" for tag in sorted(task.tags))
    if task.reminder is not None:
        parts.append(f"@{format_date(task.reminder)}")
    if task.importance is not None:
        parts.append(f"${task.importance}")
    if task.notes:
        parts.append(f"//{task.notes}")

    return "  " * (task.indent_level + 1) + " ".join(parts)


def _resolve_cli_date(value: str, today: date) -> date:
    resolved = resolve_date(value.lstrip("!@"), today)
    if resolved is None:
        raise ParseError(ParseErrorKind.INVALID_DATE, value)
    return resolved


def _print_added(task: Task) -> None:
    kind = "subtask" if task.parent_id else "task"
    print(f"Added {kind}: \"{task.description}\"")
    print(f"  ID: {task.id}")
    if task.parent_id:
        print(f"  Parent: {task.parent_id}")
    if task.deadline is not None:
        print(f"  Deadline: {format_date(task.deadline)}")
    if task.tags:
        print(f"  Tags: {' '.join(f'#{t}' for t in sorted(task.tags))}")
    if task.reminder is not None:
        print(f"  Reminder: {format_date(task.reminder)}")
    if task.importance is not None:
        print(f"  Importance: {task.importance}")


# --- task commands ---

def add_task(args):
    """Add a new task to tasks.md."""
    store = _open_store(args)
    task = store.add(" ".join(args.text))
    _print_added(task)


def list_tasks(args):
    """List tasks, optionally including completed ones and filtered by tag."""
    store = _open_store(args)
    today = date.today()
    tasks = store.list(include_done=args.done, tag_filter=args.tag)

    if not tasks:
        print("No tasks found.")
        return

    if args.grouped:
        for name, group in group_by_deadline(tasks, today):
            print(name)
            for task in group:
                print(_describe(task, today))
            print()
    else:
        print("tasks:")
        for task in tasks:
            print(_describe(task, today))


def toggle_task(args):
    store = _open_store(args)
    task = store.toggle(args.id)
    state = "complete" if task.done else "incomplete"
    print(f"Marked task {state}: \"{task.description}\" ({task.id})")


def delete_task(args):
    store = _open_store(args)
    task = store.delete(args.id)
    print(f"Deleted task: \"{task.description}\" ({task.id})")


def update_task(args):
    """Update individual fields of a task."""
    today = date.today()
    changes = {}

    if args.description is not None:
        changes["description"] = args.description
    if args.deadline is not None:
        changes["deadline"] = _resolve_cli_date(args.deadline, today)
    if args.reminder is not None:
        changes["reminder"] = _resolve_cli_date(args.reminder, today)
    if args.tags is not None:
        changes["tags"] = set(args.tags)
    if args.notes is not None:
        changes["notes"] = args.notes
    if args.importance is not None:
        changes["importance"] = args.importance
    if args.clear:
        changes["clear"] = set(args.clear)

    patch = TaskPatch(**changes)
    if patch.is_empty():
        print("No changes made.")
        return

    store = _open_store(args)
    task = store.update_fields(args.id, patch, today)
    print(f"Updated: {task.render()}")


def due_tasks(args):
    """Show what today's reminder email would contain."""
    store = _open_store(args)
    reminders = compose_reminders(store.list(include_done=False), date.today())

    if not reminders:
        print("No tasks requiring reminders.")
        return

    for reminder in reminders:
        print(f"{reminder.reason.upper()}: {_describe(reminder.task, date.today()).strip()}")


# --- email / daemon commands ---

def _make_daemon(args) -> ReminderDaemon:
    settings = args.settings
    notifier = EmailNotifier(load_email_config(settings.email_config_file))
    return ReminderDaemon(
        settings.tasks_file,
        notifier,
        fire_at=settings.daemon_time,
        versioning=_make_versioning(settings),
    )


def send_email(args):
    """Send the reminder email once, now."""
    try:
        reminders = _make_daemon(args).run_once()
    except (smtplib.SMTPException, OSError) as e:
        print(f"Error: failed to send email reminders: {e}", file=sys.stderr)
        sys.exit(1)

    if reminders:
        print(f"Sent {len(reminders)} reminder(s).")
    else:
        print("No tasks requiring reminders found.")


def setup_email(args):
    path = args.settings.email_config_file
    if path.exists() and not args.force:
        print(f"Error: {path} already exists. Use --force to overwrite.")
        sys.exit(1)

    write_email_config_template(path)
    print(f"Created {path}")
    print("Edit it with your SMTP settings (for Gmail use an app password; port 587 uses STARTTLS).")


def run_daemon(args):
    daemon = _make_daemon(args)
    print(f"Reminder emails will be sent daily at {args.settings.daemon_time.strftime('%H:%M')}. Press Ctrl+C to stop.")
    try:
        daemon.run_forever()
    except KeyboardInterrupt:
        log.info("Daemon interrupted")


def serve(args):
    """Run the REST API."""
    import uvicorn

    from yarmtl.api.app import create_app

    store = _open_store(args)
    port = args.port or args.settings.api_port
    log.info("Starting REST API on port %d", port)
    uvicorn.run(create_app(store), host=args.host, port=port, log_level="warning")


# --- main ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="yarmtl",
        description="Markdown todo list with git history and email reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("-p", "--path", help="Directory containing tasks.md (created if missing)")
    parser.add_argument("--no-git", action="store_true", help="Do not commit changes to git")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # --- add ---
    add_p = subparsers.add_parser("add", help="Add a new task")
    add_p.add_argument("text", nargs="+", help="Task text with optional metadata tokens")
    add_p.set_defaults(func=add_task)

    # --- list ---
    list_p = subparsers.add_parser("list", help="List tasks")
    list_p.add_argument("-d", "--done", action="store_true", help="Include completed tasks")
    list_p.add_argument("--tag", action="append", help="Only tasks with this tag (repeatable, any match)")
    list_p.add_argument("--grouped", action="store_true", help="Group by deadline")
    list_p.set_defaults(func=list_tasks)

    # --- toggle / delete ---
    toggle_p = subparsers.add_parser("toggle", help="Mark a task complete/incomplete")
    toggle_p.add_argument("id", help="Task ID")
    toggle_p.set_defaults(func=toggle_task)

    delete_p = subparsers.add_parser("delete", help="Delete a task")
    delete_p.add_argument("id", help="Task ID")
    delete_p.set_defaults(func=delete_task)

    # --- update ---
    update_p = subparsers.add_parser("update", help="Change fields of a task")
    update_p.add_argument("id", help="Task ID")
    update_p.add_argument("--description", help="New description (no metadata tokens)")
    update_p.add_argument("--deadline", help="Deadline (YYYY-MM-DD, today, tomorrow, friday, ...)")
    update_p.add_argument("--reminder", help="Reminder date (same formats as --deadline)")
    update_p.add_argument("--tags", nargs="*", help="Replace the tag set")
    update_p.add_argument("--notes", help="Replace the notes")
    update_p.add_argument("--importance", type=int, help="Importance 1 (high) .. 5 (low)")
    update_p.add_argument("--clear", nargs="+",
                          choices=["deadline", "reminder", "tags", "notes", "importance"],
                          help="Remove these fields")
    update_p.set_defaults(func=update_task)

    # --- reminders ---
    due_p = subparsers.add_parser("due", help="Show due/overdue tasks and today's reminders")
    due_p.set_defaults(func=due_tasks)

    email_p = subparsers.add_parser("email", help="Send reminder email now")
    email_p.set_defaults(func=send_email)

    setup_p = subparsers.add_parser("setup-email", help="Create email_config.toml")
    setup_p.add_argument("--force", action="store_true", help="Overwrite existing config")
    setup_p.set_defaults(func=setup_email)

    daemon_p = subparsers.add_parser("daemon", help="Send reminder emails daily")
    daemon_p.set_defaults(func=run_daemon)

    # --- api ---
    serve_p = subparsers.add_parser("serve", help="Run the REST API")
    serve_p.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_p.add_argument("--port", type=int, help="Port (default: YARMTL_API_PORT or 9400)")
    serve_p.set_defaults(func=serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        settings = load_settings(working_dir=args.path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.no_git:
        settings.git_enabled = False

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args.settings = settings
    try:
        args.func(args)
    except (ParseError, StoreError, ConfigError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
