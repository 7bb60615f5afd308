"""
Interactive CLI for browsing kid records with field-level permissions applied.
"""

import json

import pandas as pd

from rally_access.config import DEFAULT_FIELD_PLACEHOLDER, MAX_PREVIEW_ROWS
from rally_access.database import init_engine, fetch_kid, fetch_kids
from rally_access.models import EvaluationContext
from rally_access.rbac import load_caller, build_evaluator, visible_kids

HELP = (
    "Commands:\n"
    "  list                 preview the kids you can see\n"
    "  show <id>            print one kid record (redacted)\n"
    "  check <id> <field>   show view/edit permission for a field\n"
    "  quit                 exit"
)


def kids_frame(kids) -> pd.DataFrame:
    """Flatten redacted kid documents into one row per kid."""
    if not kids:
        return pd.DataFrame()
    return pd.json_normalize(kids, sep=".")


def run_command(engine, evaluator, line: str) -> str:
    """Execute one REPL command and return the text to print."""
    parts = line.split()
    cmd, args = parts[0].lower(), parts[1:]

    if cmd == "help":
        return HELP

    if cmd == "list":
        if not evaluator.can_view:
            return "[denied] Your role cannot view kids."
        df = kids_frame(visible_kids(evaluator, fetch_kids(engine)))
        if df.empty:
            return "(no kids visible)"
        return df.head(MAX_PREVIEW_ROWS).to_string(index=False)

    if cmd in {"show", "check"}:
        if not args or (cmd == "check" and len(args) < 2):
            return f"Usage: {cmd} <id>" + (" <field>" if cmd == "check" else "")
        kid = fetch_kid(engine, args[0])
        if kid is None:
            return f"[not found] No kid with id {args[0]}."
        if not evaluator.can_view_kid(kid):
            return "[denied] You do not have access to this kid."
        if cmd == "show":
            return json.dumps(evaluator.filter_data(kid), indent=2, default=str)

        field = args[1]
        ctx = EvaluationContext.for_kid(kid)
        value = evaluator.field_value(field, ctx, default=DEFAULT_FIELD_PLACEHOLDER)
        return (
            f"field: {field}\n"
            f"view:  {evaluator.can_view_field(field, ctx)}\n"
            f"edit:  {evaluator.can_edit_field(field, ctx)}\n"
            f"value: {'(hidden)' if value is None else value}"
        )

    return f"Unknown command '{cmd}'. Type 'help' for a list."


def main():
    print("=== Rally Access: kid records with field-level permissions ===\n")

    engine = init_engine()

    # ── Login ────────────────────────────────────────────────────────
    try:
        api_key = input("Enter access key (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not api_key or api_key.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    try:
        caller = load_caller(engine, api_key)
        evaluator = build_evaluator(caller)
    except ValueError as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e)
        return

    caps = evaluator.capabilities
    print(f"\n[auth] Logged in as: {caller.display_name} (role={caller.role.value})")
    print(f"[auth] create={caps.can_create} edit={caps.can_edit} "
          f"delete={caps.can_delete} view={caps.can_view}")
    print(HELP)

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue
        if line.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break

        try:
            print(run_command(engine, evaluator, line))
        except Exception as e:
            print("\n[DB ERROR] Could not complete the command.")
            print("Details:", e)


if __name__ == "__main__":
    main()
