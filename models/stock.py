# models/stock.py

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.time_utils import now_utc


class StockItem(Base):
    __tablename__ = "stock_items"

    id = Column(Integer, primary_key=True, index=True)

    item_name = Column(String, nullable=False)
    category = Column(String, nullable=False)
    brand = Column(String, nullable=True)
    variant = Column(String, nullable=True)

    # Base unit the stock is counted in (pcs, ml, ...)
    unit = Column(String, nullable=False, default="pcs")

    # Optional bulk packaging: 1 packaging_unit == units_per_package base units.
    # NULL packaging_unit means packaging has not been configured yet.
    packaging_unit = Column(String, nullable=True)
    units_per_package = Column(Float, nullable=True)

    current_stock = Column(Float, nullable=False, default=0)

    status = Column(String, nullable=False, default="active")
    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    def __repr__(self):
        return f"<StockItem {self.item_name} {self.current_stock} {self.unit}>"


class TreatmentConsumable(Base):
    """Default consumables pre-filled when a treatment is administered."""

    __tablename__ = "treatment_consumables"

    id = Column(Integer, primary_key=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False, index=True)
    stock_item_id = Column(Integer, ForeignKey("stock_items.id"), nullable=False)
    default_quantity = Column(Float, nullable=False, default=1)
    notes = Column(Text, nullable=True)

    stock_item = relationship("StockItem")


class VisitConsumable(Base):
    __tablename__ = "visit_consumables"

    id = Column(Integer, primary_key=True)
    visit_id = Column(Integer, ForeignKey("visits.id"), nullable=False, index=True)
    stock_item_id = Column(Integer, ForeignKey("stock_items.id"), nullable=False)
    quantity_used = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Integer, ForeignKey("staff.id"), nullable=True)
    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    visit = relationship("Visit", backref="visit_consumables")
    stock_item = relationship("StockItem")
