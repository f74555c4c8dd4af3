from datetime import datetime

from comercial.extensions import db


class CommissionConfig(db.Model):
    __tablename__ = "commission_configs"

    KIND_ADMIN = "admin"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, default=KIND_ADMIN, index=True)
    percent_bps = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    beneficiary_email = db.Column(db.String(255), nullable=False, default="")
    beneficiary_name = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1", index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "kind": self.kind or "",
            "percent_bps": int(self.percent_bps or 0),
            "beneficiary_email": self.beneficiary_email or "",
            "beneficiary_name": self.beneficiary_name or "",
            "is_active": bool(self.is_active),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class CommissionRecord(db.Model):
    __tablename__ = "commission_records"
    __table_args__ = (
        db.UniqueConstraint("parcel_ref", "beneficiary_type", name="uq_commission_parcel_beneficiary"),
    )

    id = db.Column(db.Integer, primary_key=True)
    parcel_ref = db.Column(db.String(64), nullable=False, index=True)
    beneficiary_type = db.Column(db.String(16), nullable=False)
    beneficiary_id = db.Column(db.Integer, nullable=True, index=True)
    beneficiary_email = db.Column(db.String(255), nullable=False, default="", index=True)
    beneficiary_name = db.Column(db.String(120), nullable=True)

    origin_vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    installment_id = db.Column(db.Integer, db.ForeignKey("sale_installments.id"), nullable=True, index=True)

    sale_amount_minor = db.Column(db.Integer, nullable=False, default=0)
    percent_bps = db.Column(db.Integer, nullable=False, default=0)
    amount_minor = db.Column(db.Integer, nullable=False, default=0)

    due_date = db.Column(db.Date, nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", server_default="pending", index=True)
    released_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("payment_batches.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    installment = db.relationship("SaleInstallment", lazy="joined")
    sale = db.relationship("Sale", lazy="select")

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "parcel_ref": self.parcel_ref or "",
            "beneficiary_type": self.beneficiary_type or "",
            "beneficiary_id": int(self.beneficiary_id) if self.beneficiary_id is not None else None,
            "beneficiary_email": self.beneficiary_email or "",
            "beneficiary_name": self.beneficiary_name or "",
            "origin_vendor_id": int(self.origin_vendor_id) if self.origin_vendor_id is not None else None,
            "sale_id": int(self.sale_id),
            "installment_id": int(self.installment_id) if self.installment_id is not None else None,
            "sale_amount_minor": int(self.sale_amount_minor or 0),
            "percent_bps": int(self.percent_bps or 0),
            "amount_minor": int(self.amount_minor or 0),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status or "",
            "released_at": self.released_at.isoformat() if self.released_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "batch_id": int(self.batch_id) if self.batch_id is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CommissionTransition(db.Model):
    __tablename__ = "commission_transitions"

    id = db.Column(db.Integer, primary_key=True)
    commission_id = db.Column(db.Integer, db.ForeignKey("commission_records.id"), nullable=False, index=True)
    from_status = db.Column(db.String(16), nullable=False, default="")
    to_status = db.Column(db.String(16), nullable=False)
    actor_type = db.Column(db.String(32), nullable=False, default="system")
    actor_id = db.Column(db.String(64), nullable=True)
    reason = db.Column(db.String(240), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "commission_id": int(self.commission_id),
            "from_status": self.from_status or "",
            "to_status": self.to_status or "",
            "actor_type": self.actor_type or "",
            "actor_id": self.actor_id or None,
            "reason": self.reason or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
