"""Operator console for the storefront accounts service

    python -m accounts_ui.admin_console create-admin
    python -m accounts_ui.admin_console accounts --status active
    python -m accounts_ui.admin_console logs
"""

import argparse
import sys
from typing import List, Optional

from pydantic import ValidationError as SchemaError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from accounts.app import AccountsApp
from accounts.models.account import ProfileInput, Role
from accounts.utils.exceptions import AccountsError, ConfigError

console = Console()


class AdminConsole:
    """Terminal front end over the same services the web app uses"""

    def __init__(self, app: Optional[AccountsApp] = None):
        self.app = app

    def initialize_app(self) -> bool:
        if self.app is not None:
            return True
        try:
            self.app = AccountsApp().initialize()
        except ConfigError as e:
            console.print(f"[bold red]✗ Configuration error: {e}[/bold red]")
            return False
        if not self.app.connect():
            console.print("[bold red]✗ Database unavailable[/bold red]")
            return False
        return True

    def create_admin(self) -> int:
        console.print(Panel("Create administrator", style="bold blue", box=box.DOUBLE))
        first_name = Prompt.ask("First name")
        last_name = Prompt.ask("Last name")
        email = Prompt.ask("Email")
        contact = Prompt.ask("Contact number")
        position = Prompt.ask("Position", default="Administrator")
        password = Prompt.ask("Password", password=True)
        confirm = Prompt.ask("Confirm password", password=True)
        if password != confirm:
            console.print("[bold red]✗ Passwords do not match[/bold red]")
            return 1
        if len(password) < 6:
            console.print("[bold red]✗ Password must be at least 6 characters[/bold red]")
            return 1

        try:
            profile = ProfileInput(first_name=first_name, last_name=last_name, email=email, contact=contact)
        except SchemaError as e:
            console.print(f"[bold red]✗ Invalid profile: {e.errors()[0].get('msg')}[/bold red]")
            return 1
        try:
            employee = self.app.store.create_employee(
                profile, password, position, role=Role.ADMIN, actor_name="System"
            )
        except AccountsError as e:
            console.print(f"[bold red]✗ {e.message}[/bold red]")
            return 1
        console.print(f"[bold green]✓ Admin {employee.full_name} created ({employee.account_id})[/bold green]")
        return 0

    def show_accounts(self, search: str, status: str, role: Optional[str], page: int, limit: int) -> int:
        try:
            items, total_pages = self.app.store.list_accounts(
                search=search,
                status=status,
                role=Role(role) if role else None,
                page=page,
                limit=limit,
            )
        except AccountsError as e:
            console.print(f"[bold red]✗ {e.message}[/bold red]")
            return 1

        table = Table(title=f"Accounts (page {page}/{total_pages})", box=box.ROUNDED, show_header=True)
        table.add_column("Account ID", style="cyan", width=10)
        table.add_column("Name", style="white")
        table.add_column("Email", style="yellow")
        table.add_column("Role", style="magenta", width=8)
        table.add_column("Status", width=10)
        for account in items:
            if account.pending_registration:
                state = "[yellow]Pending[/yellow]"
            elif account.is_active:
                state = "[green]Active[/green]"
            else:
                state = "[red]Inactive[/red]"
            table.add_row(account.account_id or "-", account.full_name, account.email, account.role.value, state)
        console.print(table)
        return 0

    def show_logs(self, limit: int) -> int:
        table = Table(title="Recent admin activity", box=box.ROUNDED, show_header=True)
        table.add_column("When", style="cyan", width=20)
        table.add_column("Admin", style="green")
        table.add_column("Action", style="white")
        for entry in self.app.audit_log.recent(limit=limit):
            table.add_row(entry.created_at.strftime("%Y-%m-%d %H:%M:%S"), entry.admin_name, entry.action)
        console.print(table)
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accounts-admin", description="Storefront accounts operator console")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("create-admin", help="Create an active administrator account")

    accounts = sub.add_parser("accounts", help="List accounts")
    accounts.add_argument("--search", default="")
    accounts.add_argument("--status", default="all", choices=["all", "active", "inactive"])
    accounts.add_argument("--role", choices=[r.value for r in Role])
    accounts.add_argument("--page", type=int, default=1)
    accounts.add_argument("--limit", type=int, default=20)

    logs = sub.add_parser("logs", help="Show the recent audit log")
    logs.add_argument("--limit", type=int, default=50)
    return parser


def main(argv: Optional[List[str]] = None, app: Optional[AccountsApp] = None) -> int:
    args = build_parser().parse_args(argv)
    ui = AdminConsole(app)
    if not ui.initialize_app():
        return 1
    if args.command == "create-admin":
        return ui.create_admin()
    if args.command == "accounts":
        return ui.show_accounts(args.search, args.status, args.role, args.page, args.limit)
    return ui.show_logs(args.limit)


if __name__ == "__main__":
    sys.exit(main())
