from datetime import datetime

from comercial.extensions import db


class PaymentBatch(db.Model):
    __tablename__ = "payment_batches"

    STATUS_OPEN = "open"
    STATUS_PAID = "paid"

    id = db.Column(db.Integer, primary_key=True)
    reference = db.Column(db.String(120), nullable=False)
    beneficiary_email = db.Column(db.String(255), nullable=False, index=True)
    period = db.Column(db.String(7), nullable=False, index=True)
    total_minor = db.Column(db.Integer, nullable=False, default=0)
    item_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STATUS_OPEN, server_default=STATUS_OPEN, index=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)

    items = db.relationship(
        "CommissionRecord",
        backref="batch",
        lazy="selectin",
        order_by="CommissionRecord.due_date",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        payload = {
            "id": int(self.id),
            "reference": self.reference or "",
            "beneficiary_email": self.beneficiary_email or "",
            "period": self.period or "",
            "total_minor": int(self.total_minor or 0),
            "item_count": int(self.item_count or 0),
            "status": self.status or "",
            "created_by": self.created_by or None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
        if include_items:
            payload["items"] = [item.to_dict() for item in (self.items or [])]
        return payload
