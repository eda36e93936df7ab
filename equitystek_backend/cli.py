import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import billing


@click.command("seed-plans")
@with_appcontext
def seed_plans():
    """Create the default subscription plans if none exist."""
    plans, created = billing.initialize_subscription_plans()
    if created:
        click.echo(f"Created {len(plans)} subscription plans")
    else:
        click.echo("Subscription plans already exist")


@click.command("create-admin")
@click.argument("email")
@click.argument("username")
@click.argument("password")
@with_appcontext
def create_admin(email, username, password):
    """Create an admin user, or promote and reset an existing one."""
    email = email.strip().lower()
    user = User.query.filter((User.email == email) | (User.username == username)).first()
    if user is None:
        user = User(email=email, username=username)
        db.session.add(user)
        action = "Created"
    else:
        action = "Updated"

    user.role = "admin"
    user.is_active = True
    user.set_password(password)
    db.session.commit()
    click.echo(f"{action} admin {user.email} (id={user.id})")


def register_cli(app):
    app.cli.add_command(seed_plans)
    app.cli.add_command(create_admin)
