"""Condominium, unit and resident management commands."""

import click
from condopay.cli.error_handling import handle_domain_error
from condopay.domain.directory import DirectoryService
from condopay.domain.entities import Role


@click.group()
def condo_group():
    """Manage condominiums."""
    pass


@condo_group.command("create")
@click.argument("name", metavar="NAME")
@click.pass_context
def create_condo(ctx, name: str):
    """Create a condominium.

    Examples:
        condopay condo create "Residencias El Parque"
    """
    service = DirectoryService(ctx.obj["db"])
    try:
        condo_id = service.create_condominium(name)
        click.echo(f"Created condominium '{name}' (ID: {condo_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@condo_group.command("list")
@click.pass_context
def list_condos(ctx):
    """List all condominiums."""
    service = DirectoryService(ctx.obj["db"])
    condos = service.list_condominiums()
    if not condos:
        click.echo("No condominiums found.")
        return

    click.echo("\nCondominiums:")
    click.echo("-" * 60)
    for condo in condos:
        click.echo(f"ID: {condo.id:3d} | {condo.name}")


@click.group()
def unit_group():
    """Manage housing units."""
    pass


@unit_group.command("create")
@click.argument("condominium_id", type=int, metavar="CONDO_ID")
@click.argument("label", metavar="LABEL")
@click.pass_context
def create_unit(ctx, condominium_id: int, label: str):
    """Create a unit inside a condominium.

    Examples:
        condopay unit create 1 "Apto 4-B"
    """
    service = DirectoryService(ctx.obj["db"])
    try:
        unit_id = service.create_unit(condominium_id, label)
        click.echo(f"Created unit '{label}' (ID: {unit_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@click.group()
def resident_group():
    """Manage residents and administrators."""
    pass


@resident_group.command("create")
@click.argument("name", metavar="NAME")
@click.option("--condo", "condominium_id", type=int, help="Condominium ID")
@click.option("--unit", "unit_id", type=int, help="Unit ID")
@click.option("--admin", is_flag=True, help="Register as administrator")
@click.pass_context
def create_resident(ctx, name: str, condominium_id: int | None, unit_id: int | None, admin: bool):
    """Register a resident.

    Examples:
        condopay resident create "Ana Pérez" --unit 3
        condopay resident create "Junta" --condo 1 --admin
    """
    service = DirectoryService(ctx.obj["db"])
    role = Role.ADMIN if admin else Role.RESIDENT
    try:
        resident_id = service.create_resident(
            name, condominium_id=condominium_id, unit_id=unit_id, role=role
        )
        click.echo(f"Created {role.value} '{name}' (ID: {resident_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@resident_group.command("list")
@click.option("--condo", "condominium_id", type=int, help="Only residents of this condominium")
@click.option("--admins", is_flag=True, help="List administrators instead of residents")
@click.pass_context
def list_residents(ctx, condominium_id: int | None, admins: bool):
    """List active residents."""
    service = DirectoryService(ctx.obj["db"])
    residents = service.list_residents(
        condominium_id=condominium_id, role=Role.ADMIN if admins else Role.RESIDENT
    )
    if not residents:
        click.echo("No residents found.")
        return

    click.echo("\nResidents:")
    click.echo("-" * 60)
    for r in residents:
        unit = r.unit_id if r.unit_id is not None else "-"
        click.echo(f"ID: {r.id:3d} | {r.name:25s} | Condo: {r.condominium_id} | Unit: {unit}")


@resident_group.command("assign-unit")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.argument("unit_id", type=int, metavar="UNIT_ID")
@click.pass_context
def assign_unit(ctx, resident_id: int, unit_id: int):
    """Associate a resident with a unit."""
    service = DirectoryService(ctx.obj["db"])
    try:
        service.assign_unit(resident_id, unit_id)
        click.echo(f"Resident {resident_id} assigned to unit {unit_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@resident_group.command("deactivate")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.pass_context
def deactivate_resident(ctx, resident_id: int):
    """Deactivate a resident (excluded from bulk charges)."""
    service = DirectoryService(ctx.obj["db"])
    try:
        service.set_active(resident_id, False)
        click.echo(f"Resident {resident_id} deactivated")
    except ValueError as e:
        handle_domain_error(ctx, e)


@resident_group.command("inbox")
@click.argument("resident_id", type=int, metavar="RESIDENT_ID")
@click.option("--unread", is_flag=True, help="Only unread notifications")
@click.pass_context
def inbox(ctx, resident_id: int, unread: bool):
    """Show a resident's notifications."""
    notifications = ctx.obj["db"].list_notifications(resident_id, unread_only=unread)
    if not notifications:
        click.echo("No notifications.")
        return
    for n in notifications:
        click.echo(f"[{n.created_at:%Y-%m-%d %H:%M}] {n.kind}: {n.message}")


def register_commands(cli):
    """Register directory commands with main CLI."""
    cli.add_command(condo_group, name="condo")
    cli.add_command(unit_group, name="unit")
    cli.add_command(resident_group, name="resident")
