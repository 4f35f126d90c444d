from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Item(db.Model):
    """
    Item master data with stock counters for two storage buckets.

    BUCKETS:
    - shop: stock on the selling floor; customer and commissioner sales draw from it
    - cold: cold storage; only vendor purchases and explicit transfers touch it

    WHY version_id: every invoice operation reads counters and writes them
    back; the mapper's version check turns a lost update into StaleDataError,
    which run_with_retry replays.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("item_code", name="uq_items_item_code"),
        db.UniqueConstraint("name", name="uq_items_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # 5-digit business code (10000-99999)
    item_code = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    shop_quantity = db.Column(db.Float, nullable=False, default=0)
    shop_net_weight = db.Column(db.Float, nullable=False, default=0)
    shop_gross_weight = db.Column(db.Float, nullable=False, default=0)
    cold_quantity = db.Column(db.Float, nullable=False, default=0)
    cold_net_weight = db.Column(db.Float, nullable=False, default=0)
    cold_gross_weight = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.item_code} name={self.name!r}>"

    def stock(self, bucket: str) -> tuple[float, float, float]:
        """(quantity, net_weight, gross_weight) held in a bucket."""
        return (
            getattr(self, f"{bucket}_quantity") or 0.0,
            getattr(self, f"{bucket}_net_weight") or 0.0,
            getattr(self, f"{bucket}_gross_weight") or 0.0,
        )

    def set_stock(self, bucket: str, quantity: float, net_weight: float, gross_weight: float) -> None:
        setattr(self, f"{bucket}_quantity", quantity)
        setattr(self, f"{bucket}_net_weight", net_weight)
        setattr(self, f"{bucket}_gross_weight", gross_weight)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_code": self.item_code,
            "name": self.name,
            "description": self.description,
            "shop_quantity": self.shop_quantity,
            "shop_net_weight": self.shop_net_weight,
            "shop_gross_weight": self.shop_gross_weight,
            "cold_quantity": self.cold_quantity,
            "cold_net_weight": self.cold_net_weight,
            "cold_gross_weight": self.cold_gross_weight,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
