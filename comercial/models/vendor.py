from datetime import datetime

from comercial.extensions import db


class Vendor(db.Model):
    __tablename__ = "vendors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    commission_bps = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    manager_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    is_manager = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default="1")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    manager = db.relationship("Vendor", remote_side=[id], backref="team")

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "name": self.name or "",
            "email": self.email or "",
            "commission_bps": int(self.commission_bps or 0),
            "manager_id": int(self.manager_id) if self.manager_id is not None else None,
            "is_manager": bool(self.is_manager),
            "is_active": bool(self.is_active),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
