from datetime import datetime

from comercial.extensions import db


class SaleStatus:
    DRAFT = "draft"
    APPROVED = "approved"
    INVOICED = "invoiced"
    PAID = "paid"
    CANCELLED = "cancelled"

    # Sales in these states have confirmed installments that earn commission.
    COMMISSIONABLE = (APPROVED, INVOICED, PAID)


class SaleOrigin:
    FATURADO = "faturado"
    MERCADOPAGO = "mercadopago"
    ONLINE = "online"

    ALL = (FATURADO, MERCADOPAGO, ONLINE)


class Sale(db.Model):
    __tablename__ = "sales"

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal_minor = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    discount_type = db.Column(db.String(32), nullable=False, default="none", server_default="none")
    discount_minor = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    total_minor = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    payment_method = db.Column(db.String(32), nullable=True)
    origin = db.Column(db.String(16), nullable=False, default=SaleOrigin.FATURADO, server_default=SaleOrigin.FATURADO)
    billing_term = db.Column(db.String(16), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SaleStatus.DRAFT, server_default=SaleStatus.DRAFT, index=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    vendor = db.relationship("Vendor", lazy="joined")
    customer = db.relationship("Customer", lazy="select")
    installments = db.relationship(
        "SaleInstallment",
        backref="sale",
        lazy="selectin",
        order_by="SaleInstallment.number",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "vendor_id": int(self.vendor_id),
            "customer_id": int(self.customer_id) if self.customer_id is not None else None,
            "subtotal_minor": int(self.subtotal_minor or 0),
            "discount_type": self.discount_type or "none",
            "discount_minor": int(self.discount_minor or 0),
            "total_minor": int(self.total_minor or 0),
            "payment_method": self.payment_method or "",
            "origin": self.origin or "",
            "billing_term": self.billing_term or "",
            "status": self.status or "",
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SaleInstallment(db.Model):
    __tablename__ = "sale_installments"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "number", name="uq_sale_installment_number"),
    )

    STATUS_OPEN = "open"
    STATUS_PAID = "paid"

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False, default=1)
    total_count = db.Column(db.Integer, nullable=False, default=1)
    amount_minor = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    due_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_OPEN, server_default=STATUS_OPEN, index=True)
    paid_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_paid(self) -> bool:
        return (self.status or "") == self.STATUS_PAID

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "sale_id": int(self.sale_id),
            "number": int(self.number or 0),
            "total_count": int(self.total_count or 0),
            "amount_minor": int(self.amount_minor or 0),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status or "",
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
