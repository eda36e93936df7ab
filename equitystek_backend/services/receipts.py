import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app, render_template

from ..extensions import db
from ..models import Receipt

log = logging.getLogger(__name__)

RECEIPT_PREFIX = "ET"


def generate_receipt_number(today=None):
    """ET-YYYYMMDD-NNNNN where NNNNN counts today's receipts, starting at 1."""
    today = today or datetime.utcnow()
    date_prefix = f"{RECEIPT_PREFIX}-{today:%Y%m%d}"
    existing = Receipt.query.filter(Receipt.receipt_number.like(f"{date_prefix}-%")).count()
    return f"{date_prefix}-{existing + 1:05d}"


def create_receipt(user_id, amount, description, receipt_type="one_time", currency="USD",
                   payment_method=None, payment_status="paid", stripe_payment_intent_id=None,
                   items=None, commit=True):
    receipt = Receipt(
        user_id=user_id,
        receipt_number=generate_receipt_number(),
        amount=Decimal(str(amount)),
        currency=currency,
        description=description,
        type=receipt_type,
        items=items or {"items": [{"name": description, "amount": float(amount)}]},
        payment_method=payment_method,
        payment_status=payment_status,
        stripe_payment_intent_id=stripe_payment_intent_id,
    )
    db.session.add(receipt)
    # Flush so the next number generated in this transaction sees this one
    db.session.flush()
    if commit:
        db.session.commit()
    log.info("Created receipt %s for user %s (%s %s)", receipt.receipt_number, user_id, amount, currency)
    return receipt


def find_by_payment_intent(intent_id):
    if not intent_id:
        return None
    return Receipt.query.filter_by(stripe_payment_intent_id=intent_id).first()


def render_receipt_html(receipt):
    return render_template(
        "receipt.html",
        receipt=receipt,
        items=(receipt.items or {}).get("items", []),
        user=receipt.user,
        issued=receipt.created_at or datetime.utcnow(),
        data_region=current_app.config.get("DATA_REGION", "Australia"),
    )
