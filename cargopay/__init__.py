import os
import logging

import click
from flask import Flask, jsonify

from cargopay.config import config_by_name
from cargopay.extensions import db, migrate, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from cargopay import models  # noqa: F401

    # --- Register blueprints ---
    from cargopay.blueprints.webhooks import webhooks_bp
    from cargopay.blueprints.checkout import checkout_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(checkout_bp)

    @app.route("/health")
    def health():
        return jsonify(status="ok")

    # --- Error handlers (JSON only, there are no pages) ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error="Not found"), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(error="Method not allowed"), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(error="Too many requests"), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify(error="Internal server error"), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("sign-webhook")
    @click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
    def sign_webhook(payload_file):
        """Print the Wave-Signature header value for a payload file.

        Signs the exact file bytes with WAVE_WEBHOOK_SECRET, so a captured
        delivery can be replayed against a local server:

            flask sign-webhook event.json
        """
        from cargopay.services.webhook_auth import SIGNATURE_HEADER, compute_signature

        secret = app.config.get("WAVE_WEBHOOK_SECRET")
        if not secret:
            click.echo("ERROR: WAVE_WEBHOOK_SECRET is not set.")
            return

        with open(payload_file, "rb") as f:
            raw_body = f.read()

        click.echo(f"{SIGNATURE_HEADER}: {compute_signature(secret, raw_body)}")

    @app.cli.command("seed-demo-payment")
    @click.option("--reference", default=None, help="Transaction reference")
    @click.option("--user-id", default=None, help="User owning the subscription")
    @click.option("--amount", default="5000", help="Amount")
    @click.option("--currency", default="XOF", help="Currency code")
    def seed_demo_payment(reference, user_id, amount, currency):
        """Create a pending transaction + pending_payment subscription.

        Usage:
            flask seed-demo-payment
            flask seed-demo-payment --reference TX-42 --user-id U1
        """
        import secrets
        import uuid
        from decimal import Decimal

        from cargopay.models.payment import Transaction, UserSubscription

        reference = reference or f"TX-DEMO-{secrets.token_hex(4).upper()}"
        user_id = user_id or str(uuid.uuid4())

        existing = Transaction.query.filter_by(reference=reference).first()
        if existing:
            click.echo(f"Transaction already exists: {reference} ({existing.status})")
            return

        transaction = Transaction(
            reference=reference,
            user_id=user_id,
            amount=Decimal(amount),
            currency=currency,
            provider="wave",
            status="pending",
            metadata_={"source": "seed-demo-payment"},
        )
        db.session.add(transaction)

        subscription = UserSubscription(
            user_id=user_id,
            status="pending_payment",
        )
        db.session.add(subscription)
        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Demo payment created!")
        click.echo("=" * 60)
        click.echo(f"  Transaction:  {reference} ({amount} {currency}, pending)")
        click.echo(f"  User:         {user_id}")
        click.echo(f"  Subscription: {subscription.id} (pending_payment)")
        click.echo("")
        click.echo("Complete it with a checkout.session.completed event whose")
        click.echo(f"data.client_reference is {reference}.")
        click.echo("=" * 60)
