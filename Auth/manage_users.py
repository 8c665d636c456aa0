# Auth/manage_users.py
import typer
from sqlalchemy.engine import Engine
from sqlmodel import Session, select
from tabulate import tabulate

from Auth import bruteforce, users
from Auth.database import init_db, make_engine
from Auth.models import Role, User
from Core.errors import ValidationFailed

cli = typer.Typer(help="HealthLife user management")


@cli.callback()
def main(
    ctx: typer.Context,
    database_url: str = typer.Option("sqlite:///./app.db", envvar="DATABASE_URL", help="Database URL"),
):
    engine = make_engine(database_url)
    init_db(engine)
    ctx.obj = engine


def _find(s: Session, email: str) -> User:
    user = users.find_active_by_email(s, email)
    if not user:
        typer.echo("❌ Not found")
        raise typer.Exit(1)
    return user


def _role(value: str) -> str:
    if value not in (Role.user.value, Role.admin.value):
        typer.echo(f"❌ Unknown role: {value}")
        raise typer.Exit(1)
    return value


@cli.command()
def add(
    ctx: typer.Context,
    email: str = typer.Argument(...),
    role: str = typer.Option("user", help="Role of the user"),
    name: str = typer.Option(None, help="Display name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Add a new user."""
    engine: Engine = ctx.obj
    with Session(engine) as s:
        try:
            users.create_user(s, email, password, name=name, role=_role(role))
        except ValidationFailed as e:
            for problem in e.extra.get("details", []):
                typer.echo(f"❌ {problem['message']}")
            raise typer.Exit(1)
    typer.echo("✅ Created")


@cli.command()
def passwd(
    ctx: typer.Context,
    email: str,
    password: str = typer.Option(..., prompt="New password", hide_input=True, confirmation_prompt=True),
):
    """Change a password. Also lifts a lockout."""
    with Session(ctx.obj) as s:
        user = _find(s, email)
        try:
            users.change_password(s, user, password, field="password")
        except ValidationFailed as e:
            for problem in e.extra.get("details", []):
                typer.echo(f"❌ {problem['message']}")
            raise typer.Exit(1)
        bruteforce.reset_failures(s, user)
    typer.echo("🔑 Changed")


@cli.command()
def delete(ctx: typer.Context, email: str):
    """Soft-delete a user; the email stays taken."""
    with Session(ctx.obj) as s:
        users.soft_delete(s, _find(s, email))
    typer.echo("🗑️  Deleted")


@cli.command()
def role(ctx: typer.Context, email: str, new_role: str = typer.Argument(..., metavar="ROLE")):
    """Set the stored role of a user."""
    with Session(ctx.obj) as s:
        user = _find(s, email)
        user.role = _role(new_role)
        s.add(user)
        s.commit()
    typer.echo(f"✅ {email} is now {new_role}")


@cli.command("list")
def list_users(
    ctx: typer.Context,
    full: bool = typer.Option(False, help="Show hashes too"),
    deleted: bool = typer.Option(False, help="Include soft-deleted users"),
):
    """List users (id, email, role, lock state, optionally hash)."""
    cols = [User.id, User.email, User.name, User.role, User.failed_login_count, User.locked_until]
    headers = ["id", "email", "name", "role", "failures", "locked_until"]
    if deleted:
        cols.append(User.deleted_at)
        headers.append("deleted_at")
    if full:
        cols.append(User.hashed_password)
        headers.append("hashed_password")

    query = select(*cols).order_by(User.id)
    if not deleted:
        query = query.where(User.deleted_at.is_(None))
    with Session(ctx.obj) as s:
        rows = s.exec(query).all()

    typer.echo(tabulate(rows, headers=headers))


@cli.command()
def sweep_attempts(
    ctx: typer.Context,
    hours: int = typer.Option(bruteforce.RETENTION_HOURS, help="Keep attempts younger than this"),
):
    """Delete login attempts older than the retention window."""
    removed = bruteforce.sweep(ctx.obj, retention_hours=hours)
    typer.echo(f"🧹 Removed {removed} login attempts")


if __name__ == "__main__":
    cli()
