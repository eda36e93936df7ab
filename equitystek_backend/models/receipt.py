from datetime import datetime

from . import db

RECEIPT_TYPES = ("subscription", "one_time")


class Receipt(db.Model):
    __tablename__ = "receipts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    receipt_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # Payment details
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    description = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(20), nullable=False, default="one_time")  # 'subscription' | 'one_time'
    items = db.Column(db.JSON, nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    payment_status = db.Column(db.String(20), nullable=False)  # 'pending' | 'paid' | 'failed' | 'refunded'

    stripe_payment_intent_id = db.Column(db.String(80), nullable=True, index=True)
    pdf_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("receipts", lazy=True))

    def __repr__(self):
        return f"<Receipt {self.receipt_number}: ${self.amount} - {self.payment_status}>"

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "receipt_number": self.receipt_number,
            "amount": float(self.amount),
            "currency": self.currency,
            "description": self.description,
            "type": self.type,
            "items": self.items or {},
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "stripe_payment_intent_id": self.stripe_payment_intent_id,
            "pdf_url": self.pdf_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
