"""
Main CLI application using Typer.
"""

import asyncio
import logging
import unicodedata
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.auth_client import SessionStorage, SupabaseAuthClient
from ..adapters.mock_store import InMemoryStore, MockAuthClient, load_fixture
from ..adapters.rest_client import RestClient
from ..adapters.supabase_store import SupabaseStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BarberbookError, ValidationError
from ..domain.models import WEEKDAY_LABELS, Reservation
from ..domain.policies import ModificationPolicy
from ..domain.slot_calculator import SlotCalculator
from ..services.accounts import AccountService
from ..services.admin import AdminService
from ..services.booking import BookingService
from ..services.protocols import AuthClientProtocol, StoreProtocol
from ..services.session import SessionManager

app = typer.Typer(
    name="barberbook",
    help="Agende horários na barbearia e administre a agenda",
    add_completion=False
)
admin_app = typer.Typer(help="Ferramentas do administrador", add_completion=False)
app.add_typer(admin_app, name="admin")

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_STYLES = {
    "agendado": "cyan",
    "confirmado": "green",
    "concluido": "bold green",
    "cancelado": "red",
}


@dataclass
class CliState:
    """Global options collected by the callback."""
    config_file: Optional[Path] = None
    mock: bool = False
    mock_user: Optional[str] = None


@dataclass
class Runtime:
    """Everything a command needs, wired once per invocation."""
    config: AppConfig
    store: StoreProtocol
    auth_client: AuthClientProtocol
    session: SessionManager
    accounts: AccountService
    booking: BookingService
    admin: AdminService


def format_brl(value: Decimal) -> str:
    """Format a price as Brazilian currency, e.g. R$ 1.234,56."""
    text = f"{value:,.2f}"
    return "R$ " + text.replace(",", "X").replace(".", ",").replace("X", ".")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(state: CliState) -> AppConfig:
    config_path = state.config_file or get_default_config_path()
    if state.mock and not config_path.exists():
        # Mock mode needs no credentials
        return AppConfig(supabase_url="http://localhost", anon_key="mock")
    return AppConfig.load_from_yaml(config_path)


def build_runtime(config: AppConfig, mock: bool = False, mock_user: Optional[str] = None) -> Runtime:
    """Wire adapters and services for one CLI invocation."""
    if mock:
        fixture = load_fixture()
        store = InMemoryStore.from_fixture(fixture)
        auth_client = MockAuthClient.from_fixture(fixture)
        if mock_user:
            auth_client.initial_email = mock_user
    else:
        storage = SessionStorage(
            key_identifier=config.supabase_url,
            session_file=config.get_session_file(),
        )
        auth_client = SupabaseAuthClient(
            auth_url=config.get_auth_url(),
            api_key=config.anon_key,
            storage=storage,
            timeout=config.request_timeout_seconds,
        )
        store = SupabaseStore(
            RestClient(
                rest_url=config.get_rest_url(),
                api_key=config.anon_key,
                timeout=config.request_timeout_seconds,
                token_provider=auth_client.current_access_token,
            )
        )

    policy = ModificationPolicy(edit_window_hours=config.booking.edit_window_hours)
    return Runtime(
        config=config,
        store=store,
        auth_client=auth_client,
        session=SessionManager(auth_client, store),
        accounts=AccountService(auth_client, store),
        booking=BookingService(
            store,
            SlotCalculator(timezone=config.timezone),
            policy,
            default_duration_minutes=config.booking.default_duration_minutes,
        ),
        admin=AdminService(store, policy, timezone=config.timezone),
    )


async def _with_session(runtime: Runtime, action: Callable[[Runtime], Awaitable[T]]) -> T:
    await runtime.session.restore()
    try:
        return await action(runtime)
    finally:
        runtime.session.stop()


def _run(ctx: typer.Context, action: Callable[[Runtime], Awaitable[T]]) -> T:
    """Build the runtime, restore the session and run ``action``; errors become exit code 1."""
    state: CliState = ctx.obj or CliState()

    try:
        config = _load_config(state)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Erro de configuração:[/bold red] {e}")
        raise typer.Exit(1)

    logger.debug("Using %s backend", "mock" if state.mock else config.supabase_url)
    runtime = build_runtime(config, mock=state.mock, mock_user=state.mock_user)

    try:
        return asyncio.run(_with_session(runtime, action))
    except BarberbookError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_weekday(value: str) -> int:
    """Accept 0-6 or a short label such as 'seg' or 'sab'."""
    value = value.strip()
    if value.isdigit():
        return int(value)

    def fold(text: str) -> str:
        normalized = unicodedata.normalize("NFKD", text.lower())
        return "".join(ch for ch in normalized if not unicodedata.combining(ch))

    for number, label in WEEKDAY_LABELS.items():
        if fold(label) == fold(value)[:3]:
            return number
    raise ValidationError(f"Dia da semana inválido: '{value}'. Use 0-6 ou dom, seg, ter, ...")


def _status_text(reservation: Reservation) -> str:
    status = reservation.status.value if reservation.status else (reservation.raw_status or "pendente")
    style = STATUS_STYLES.get(status, "dim")
    return f"[{style}]{status}[/{style}]"


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Usar dados de teste em memória, sem servidor.")] = False,
    mock_user: Annotated[Optional[str], typer.Option("--mock-user", help="E-mail do usuário já logado no modo mock.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Mostrar logs de depuração.")] = False,
):
    """
    Barbershop booking client - customers book, admins manage the agenda.

    Examples:

        barberbook login cliente@example.com
        barberbook slots 2026-11-03
        barberbook book 2026-11-03 10:30 1
        barberbook admin dashboard

        # Use mock data (no server needed)
        barberbook --mock slots 2026-11-03
        barberbook --mock --mock-user admin@example.com admin today
    """
    _configure_logging(verbose)
    ctx.obj = CliState(config_file=config_file, mock=mock, mock_user=mock_user)


# --- Account -----------------------------------------------------------------


@app.command()
def signup(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Nome completo")],
    email: Annotated[str, typer.Argument(help="E-mail")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True, confirmation_prompt=True, help="Senha")],
):
    """
    Create a customer account.
    """
    async def action(runtime: Runtime):
        result = await runtime.accounts.sign_up(name, email, password)
        if result.needs_confirmation:
            console.print(
                "[yellow]Verifique seu e-mail:[/yellow] enviamos um link de confirmação. "
                "Confirme para continuar."
            )
        else:
            console.print("[bold green]✓ Conta criada com sucesso.[/bold green]")

    _run(ctx, action)


@app.command()
def login(
    ctx: typer.Context,
    email: Annotated[str, typer.Argument(help="E-mail")],
    password: Annotated[str, typer.Option(prompt=True, hide_input=True, help="Senha")],
):
    """
    Sign in with e-mail and password.
    """
    async def action(runtime: Runtime):
        await runtime.accounts.sign_in(email, password)
        profile = runtime.session.profile
        greeting = profile.name if profile else email
        console.print(f"[bold green]✓ Bem-vindo, {greeting}![/bold green]")

    _run(ctx, action)


@app.command()
def logout(ctx: typer.Context):
    """
    Sign out and forget the stored session.
    """
    async def action(runtime: Runtime):
        await runtime.accounts.sign_out()
        console.print("[green]Sessão encerrada.[/green]")

    _run(ctx, action)


@app.command()
def reset_password(
    ctx: typer.Context,
    email: Annotated[str, typer.Argument(help="E-mail da conta")],
):
    """
    Request a password-reset e-mail.
    """
    async def action(runtime: Runtime):
        await runtime.accounts.request_password_reset(email)
        console.print(
            "[green]Se o e-mail estiver cadastrado, você receberá um link para redefinir a senha.[/green]"
        )

    _run(ctx, action)


@app.command()
def whoami(ctx: typer.Context):
    """
    Show the signed-in user.
    """
    async def action(runtime: Runtime):
        user = runtime.session.require_user()
        profile = runtime.session.profile
        role = "Administrador" if profile and profile.is_admin else "Cliente"
        console.print(Panel.fit(
            f"[bold]Nome:[/bold] {profile.name if profile else 'N/A'}\n"
            f"[bold]E-mail:[/bold] {user.email or 'N/A'}\n"
            f"[bold]Perfil:[/bold] {role}",
            title=runtime.config.shop_name
        ))

    _run(ctx, action)


# --- Customer ----------------------------------------------------------------


@app.command()
def services(ctx: typer.Context):
    """
    List the services offered.
    """
    async def action(runtime: Runtime):
        items = await runtime.booking.list_services()
        if not items:
            console.print("[yellow]Nenhum serviço cadastrado.[/yellow]")
            return

        table = Table(title="Serviços", show_header=True, header_style="bold cyan")
        table.add_column("ID", justify="right")
        table.add_column("Serviço", style="bold yellow")
        table.add_column("Preço", justify="right")
        table.add_column("Duração", justify="right", style="dim")
        for service in items:
            table.add_row(
                str(service.id),
                service.name,
                format_brl(service.price),
                f"{service.effective_duration(runtime.config.booking.default_duration_minutes)} min",
            )
        console.print(table)

    _run(ctx, action)


@app.command()
def slots(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Data (YYYY-MM-DD)")],
    reschedule_id: Annotated[Optional[int], typer.Option("--reschedule", help="ID do agendamento que será remarcado.")] = None,
):
    """
    Show free and occupied slots for a date.
    """
    async def action(runtime: Runtime):
        runtime.session.require_user()
        items = await runtime.booking.available_slots(date, exclude_reservation_id=reschedule_id)
        if not items:
            console.print(f"[yellow]Nenhum horário disponível em {date}.[/yellow]")
            return

        table = Table(title=f"Horários em {date}", show_header=True, header_style="bold cyan")
        table.add_column("Horário", style="bold")
        table.add_column("Situação")
        for slot in items:
            table.add_row(slot.label, "[red]Ocupado[/red]" if slot.is_occupied else "[green]Livre[/green]")
        console.print(table)

    _run(ctx, action)


@app.command()
def book(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Data (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Horário (HH:MM)")],
    service_id: Annotated[int, typer.Argument(help="ID do serviço (veja 'services')")],
):
    """
    Book a service on a free slot.
    """
    async def action(runtime: Runtime):
        user = runtime.session.require_user()
        reservation = await runtime.booking.book(
            customer_id=user.id,
            service_id=service_id,
            date_str=date,
            time_str=time,
        )
        service_name = reservation.service.name if reservation.service else f"#{service_id}"
        console.print(Panel.fit(
            f"[bold]Serviço:[/bold] {service_name}\n"
            f"[bold]Data:[/bold] {reservation.format_display(runtime.config.timezone)}\n\n"
            f"Nos vemos lá!",
            title="✓ Agendamento confirmado"
        ))

    _run(ctx, action)


@app.command()
def reschedule(
    ctx: typer.Context,
    reservation_id: Annotated[int, typer.Argument(help="ID do agendamento")],
    date: Annotated[str, typer.Argument(help="Nova data (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Novo horário (HH:MM)")],
    service_id: Annotated[int, typer.Argument(help="ID do serviço")],
):
    """
    Move one of your bookings to another slot.
    """
    async def action(runtime: Runtime):
        user = runtime.session.require_user()
        reservation = await runtime.booking.reschedule(
            reservation_id=reservation_id,
            customer_id=user.id,
            service_id=service_id,
            date_str=date,
            time_str=time,
        )
        console.print(Panel.fit(
            f"[bold]Nova data:[/bold] {reservation.format_display(runtime.config.timezone)}",
            title="✓ Reagendamento confirmado"
        ))

    _run(ctx, action)


@app.command()
def cancel(
    ctx: typer.Context,
    reservation_id: Annotated[int, typer.Argument(help="ID do agendamento")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Não pedir confirmação.")] = False,
):
    """
    Cancel one of your bookings.
    """
    if not yes and not typer.confirm(f"Tem certeza que deseja cancelar o agendamento {reservation_id}?"):
        raise typer.Exit(0)

    async def action(runtime: Runtime):
        user = runtime.session.require_user()
        await runtime.booking.cancel(reservation_id=reservation_id, customer_id=user.id)
        console.print("[green]✓ Agendamento cancelado.[/green]")

    _run(ctx, action)


@app.command()
def my_bookings(ctx: typer.Context):
    """
    List your bookings.
    """
    async def action(runtime: Runtime):
        user = runtime.session.require_user()
        reservations = await runtime.booking.my_reservations(user.id)
        if not reservations:
            console.print("[yellow]Você ainda não possui agendamentos.[/yellow]")
            return

        table = Table(title="Meus agendamentos", show_header=True, header_style="bold cyan")
        table.add_column("ID", justify="right")
        table.add_column("Serviço", style="bold yellow")
        table.add_column("Data")
        table.add_column("Status")
        table.add_column("Pode alterar", justify="center")
        for reservation in reservations:
            table.add_row(
                str(reservation.id),
                reservation.service.name if reservation.service else "Removido",
                reservation.format_display(runtime.config.timezone),
                _status_text(reservation),
                "✓" if runtime.booking.can_modify(reservation) else "✗",
            )
        console.print(table)

    _run(ctx, action)


# --- Admin -------------------------------------------------------------------


@admin_app.command("today")
def admin_today(ctx: typer.Context):
    """
    Show today's agenda.
    """
    async def action(runtime: Runtime):
        runtime.session.require_admin()
        reservations = await runtime.admin.todays_reservations()
        if not reservations:
            console.print("[yellow]Nenhum agendamento para hoje.[/yellow]")
            return

        table = Table(title="Agenda de hoje", show_header=True, header_style="bold cyan")
        table.add_column("ID", justify="right")
        table.add_column("Horário", style="bold")
        table.add_column("Cliente")
        table.add_column("Serviço", style="yellow")
        table.add_column("Preço", justify="right")
        table.add_column("Status")
        for reservation in reservations:
            table.add_row(
                str(reservation.id),
                reservation.local_start(runtime.config.timezone).format("HH:mm"),
                reservation.customer_name or "Cliente",
                reservation.service.name if reservation.service else "Removido",
                format_brl(reservation.price),
                _status_text(reservation),
            )
        console.print(table)

    _run(ctx, action)


@admin_app.command("complete")
def admin_complete(
    ctx: typer.Context,
    reservation_id: Annotated[int, typer.Argument(help="ID do agendamento")],
):
    """
    Mark a booking as completed.
    """
    async def action(runtime: Runtime):
        runtime.session.require_admin()
        await runtime.admin.complete(reservation_id)
        console.print("[green]✓ Serviço marcado como concluído![/green]")

    _run(ctx, action)


@admin_app.command("cancel")
def admin_cancel(
    ctx: typer.Context,
    reservation_id: Annotated[int, typer.Argument(help="ID do agendamento")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Não pedir confirmação.")] = False,
):
    """
    Cancel any booking that is not completed.
    """
    if not yes and not typer.confirm(f"Cancelar o agendamento {reservation_id}?"):
        raise typer.Exit(0)

    async def action(runtime: Runtime):
        runtime.session.require_admin()
        await runtime.admin.cancel(reservation_id)
        console.print("[green]✓ Agendamento cancelado.[/green]")

    _run(ctx, action)


@admin_app.command("template")
def admin_template(
    ctx: typer.Context,
    day: Annotated[str, typer.Argument(help="Dia da semana: 0-6 (0=domingo) ou dom, seg, ter, qua, qui, sex, sab")],
    start: Annotated[Optional[str], typer.Option("--start", help="Início (HH:MM)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Fim, exclusivo (HH:MM)")] = None,
    interval: Annotated[Optional[int], typer.Option("--interval", "-i", help="Intervalo em minutos")] = None,
):
    """
    Regenerate the weekly slot template for one weekday.
    """
    async def action(runtime: Runtime):
        runtime.session.require_admin()
        defaults = runtime.config.template_defaults
        day_number = _parse_weekday(day)
        times = await runtime.admin.regenerate_weekly_template(
            day_number,
            start or defaults.start,
            end or defaults.end,
            interval if interval is not None else defaults.interval_minutes,
        )
        label = WEEKDAY_LABELS.get(day_number, str(day_number))
        console.print(f"[bold green]✓ {len(times)} horários foram gerados para {label}.[/bold green]")
        console.print("  " + ", ".join(t.strftime("%H:%M") for t in times))

    _run(ctx, action)


@admin_app.command("dashboard")
def admin_dashboard(ctx: typer.Context):
    """
    Show revenue and booking statistics.
    """
    async def action(runtime: Runtime):
        runtime.session.require_admin()
        report = await runtime.admin.dashboard()
        metrics = report.metrics

        console.print(Panel.fit(
            f"[bold]Faturamento mensal:[/bold] {format_brl(metrics.month_revenue)}\n"
            f"[bold]Faturamento semanal:[/bold] {format_brl(metrics.week_revenue)}\n"
            f"[bold]Faturamento total:[/bold] {format_brl(metrics.total_revenue)}\n"
            f"[bold]Serviços concluídos:[/bold] {metrics.completed_count} de {metrics.total_count} "
            f"({metrics.completion_rate:.1f}%)\n"
            f"[bold]Clientes fiéis:[/bold] {metrics.loyal_customers}",
            title="Visão geral do negócio"
        ))

        services_table = Table(title="Serviços", header_style="bold cyan")
        services_table.add_column("Serviço", style="yellow")
        services_table.add_column("Agendamentos", justify="right")
        services_table.add_column("Faturamento", justify="right")
        for item in report.services:
            services_table.add_row(item.name, str(item.count), format_brl(item.revenue))
        console.print(services_table)

        daily_table = Table(title="Últimos 7 dias", header_style="bold cyan")
        daily_table.add_column("Dia")
        daily_table.add_column("Concluídos", justify="right")
        daily_table.add_column("Faturamento", justify="right")
        for day in report.daily:
            daily_table.add_row(day.label, str(day.completed_count), format_brl(day.revenue))
        console.print(daily_table)

        hours_table = Table(title="Horários mais rentáveis", header_style="bold cyan")
        hours_table.add_column("Horário")
        hours_table.add_column("Agendamentos", justify="right")
        hours_table.add_column("Faturamento", justify="right")
        for hour in report.hours:
            hours_table.add_row(hour.label, str(hour.count), format_brl(hour.revenue))
        console.print(hours_table)

        status_table = Table(title="Status", header_style="bold cyan")
        status_table.add_column("Status")
        status_table.add_column("Quantidade", justify="right")
        for status in report.statuses:
            status_table.add_row(status.name, str(status.count))
        console.print(status_table)

        monthly_table = Table(title="Relatório mensal", header_style="bold cyan")
        monthly_table.add_column("Mês")
        monthly_table.add_column("Faturamento", justify="right")
        monthly_table.add_column("Crescimento", justify="right")
        for month in report.monthly:
            style = "green" if month.growth_percent >= 0 else "red"
            monthly_table.add_row(
                month.label,
                format_brl(month.revenue),
                f"[{style}]{month.growth_percent:+.1f}%[/{style}]",
            )
        console.print(monthly_table)

    _run(ctx, action)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
