"""QuotationItem model - one priced line with operational and snapshot views."""
from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from studio_quotes.database import Base, BigIntegerType
from studio_quotes.models.catalog import BillingType, ProfitType, enum_values
from studio_quotes.utils.line_fields import LineFieldSet, SNAPSHOT_SUFFIX, resolve_line_field


class QuotationItem(Base):
    """
    Quotation line.

    Catalog-sourced lines reference ``item_id``; custom lines set
    ``is_custom`` and own their pricing. The ``*_snapshot`` columns mirror
    the operational ones and become the source of truth once the parent
    quotation is authorized.
    """

    __tablename__ = 'quotation_item'

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    quotation_id = Column(BigIntegerType, ForeignKey('quotation.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id = Column(BigIntegerType, ForeignKey('catalog_item.id', ondelete='SET NULL'), nullable=True, index=True)
    category_id = Column(BigIntegerType, ForeignKey('catalog_category.id', ondelete='SET NULL'), nullable=True)
    is_custom = Column(Boolean, nullable=False, default=False)
    quantity = Column(Integer, nullable=False, default=1)
    billing_type = Column(
        SQLEnum(BillingType, native_enum=False, values_callable=enum_values, length=20),
        nullable=False, default=BillingType.SERVICE
    )
    order = Column(Integer, nullable=True)
    is_courtesy = Column(Boolean, nullable=False, default=False)

    # Operational view
    name = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    category_name = Column(String(200), nullable=True)
    section_name = Column(String(200), nullable=True)
    section_order = Column(Integer, nullable=True)
    category_order = Column(Integer, nullable=True)
    cost = Column(Numeric(14, 2), nullable=False, default=0)
    expense = Column(Numeric(14, 2), nullable=False, default=0)
    profit = Column(Numeric(14, 2), nullable=False, default=0)
    public_price = Column(Numeric(14, 2), nullable=False, default=0)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    profit_type = Column(
        SQLEnum(ProfitType, native_enum=False, values_callable=enum_values, length=20),
        nullable=True
    )

    # Snapshot view (frozen at authorization)
    name_snapshot = Column(String(200), nullable=True)
    description_snapshot = Column(Text, nullable=True)
    category_name_snapshot = Column(String(200), nullable=True)
    section_name_snapshot = Column(String(200), nullable=True)
    section_order_snapshot = Column(Integer, nullable=True)
    category_order_snapshot = Column(Integer, nullable=True)
    cost_snapshot = Column(Numeric(14, 2), nullable=True)
    expense_snapshot = Column(Numeric(14, 2), nullable=True)
    profit_snapshot = Column(Numeric(14, 2), nullable=True)
    public_price_snapshot = Column(Numeric(14, 2), nullable=True)
    unit_price_snapshot = Column(Numeric(14, 2), nullable=True)
    subtotal_snapshot = Column(Numeric(14, 2), nullable=True)
    profit_type_snapshot = Column(
        SQLEnum(ProfitType, native_enum=False, values_callable=enum_values, length=20),
        nullable=True
    )

    # References to records owned by the scheduling and crew subsystems
    scheduler_task_id = Column(BigIntegerType, nullable=True, index=True)
    crew_assignment_id = Column(BigIntegerType, nullable=True, index=True)

    # Relationships
    quotation = relationship('Quotation', back_populates='items')
    catalog_item = relationship('CatalogItem')

    def __repr__(self):
        return f"<QuotationItem(id={self.id}, quotation_id={self.quotation_id}, name='{self.display_name}', qty={self.quantity})>"

    @property
    def operational(self) -> LineFieldSet:
        return LineFieldSet.from_object(self)

    @property
    def snapshot(self) -> LineFieldSet:
        return LineFieldSet.from_object(self, SNAPSHOT_SUFFIX)

    def resolve(self, field_name, default=None):
        """Snapshot-preferred value of ``field_name``."""
        return resolve_line_field(self.snapshot, self.operational, field_name, default)

    @property
    def display_name(self):
        return self.resolve('name')

    def write_operational(self, fields: LineFieldSet) -> None:
        fields.write_to(self)

    def write_snapshot(self, fields: LineFieldSet) -> None:
        fields.write_to(self, SNAPSHOT_SUFFIX)

    def freeze(self) -> None:
        """Copy the current operational view into the snapshot view."""
        self.write_snapshot(self.operational)

    def to_record(self) -> dict:
        """Flat record understood by the structure builder."""
        record = {
            'id': self.id,
            'item_id': self.item_id,
            'category_id': self.category_id,
            'is_custom': self.is_custom,
            'is_courtesy': self.is_courtesy,
            'quantity': self.quantity,
            'billing_type': self.billing_type.value if self.billing_type else None,
            'order': self.order,
            'scheduler_task_id': self.scheduler_task_id,
            'crew_assignment_id': self.crew_assignment_id,
        }
        for name in LineFieldSet.field_names():
            record[name] = getattr(self, name)
            record[f'{name}{SNAPSHOT_SUFFIX}'] = getattr(self, f'{name}{SNAPSHOT_SUFFIX}')
        for key in ('profit_type', f'profit_type{SNAPSHOT_SUFFIX}'):
            if record[key] is not None:
                record[key] = record[key].value
        return record
