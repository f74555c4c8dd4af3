from datetime import datetime

from comercial.extensions import db


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False, default="")
    # Free-text CRM classification: REVENDEDOR, REPRESENTANTE, ADVEC ..., IGREJA CPF, IGREJA CNPJ
    customer_type = db.Column(db.String(64), nullable=True, index=True)
    document = db.Column(db.String(18), nullable=True, index=True)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)

    special_discount_bps = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    revenue_bracket = db.Column(db.String(32), nullable=True)
    b2b_discount_bps = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    onboarding_complete = db.Column(db.Boolean, nullable=False, default=False, server_default="0")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    category_discounts = db.relationship(
        "CustomerCategoryDiscount",
        backref="customer",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def category_discount_bps(self) -> dict:
        return {row.category: int(row.percent_bps or 0) for row in (self.category_discounts or [])}

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "name": self.name or "",
            "customer_type": self.customer_type or "",
            "document": self.document or "",
            "vendor_id": int(self.vendor_id) if self.vendor_id is not None else None,
            "special_discount_bps": int(self.special_discount_bps or 0),
            "revenue_bracket": self.revenue_bracket or "",
            "b2b_discount_bps": int(self.b2b_discount_bps or 0),
            "onboarding_complete": bool(self.onboarding_complete),
            "category_discounts_bps": self.category_discount_bps(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CustomerCategoryDiscount(db.Model):
    __tablename__ = "customer_category_discounts"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "category", name="uq_customer_category_discount"),
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    category = db.Column(db.String(32), nullable=False)
    percent_bps = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "customer_id": int(self.customer_id),
            "category": self.category or "",
            "percent_bps": int(self.percent_bps or 0),
        }
