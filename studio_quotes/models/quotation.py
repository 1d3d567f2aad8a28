"""Quotation model and its lifecycle state machine."""
import enum
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, Index,
    Enum as SQLEnum, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType
from studio_quotes.exceptions import InvalidStateError
from studio_quotes.models.catalog import enum_values


class QuotationStatus(str, enum.Enum):
    """Closed set of quotation statuses."""
    PENDIENTE = "pendiente"
    NEGOCIACION = "negociacion"
    EN_CIERRE = "en_cierre"
    CONTRACT_PENDING = "contract_pending"
    CONTRACT_GENERATED = "contract_generated"
    CONTRACT_SIGNED = "contract_signed"
    AUTORIZADA = "autorizada"
    APROBADA = "aprobada"
    CANCELADA = "cancelada"
    ARCHIVADA = "archivada"


class RevisionStatus(str, enum.Enum):
    PENDING_REVISION = "pending_revision"
    ACTIVE = "active"
    REPLACED = "replaced"


class QuotationEvent(str, enum.Enum):
    """Everything that can happen to a quotation's status."""
    UPDATE = "update"
    DELETE = "delete"
    AUTHORIZE = "authorize"
    CANCEL = "cancel"
    PASS_TO_CLOSING = "pass_to_closing"
    CANCEL_CLOSING = "cancel_closing"
    NEGOTIATE = "negotiate"
    CREATE_REVISION = "create_revision"
    AUTHORIZE_REVISION = "authorize_revision"
    REPLACE = "replace"


S = QuotationStatus
E = QuotationEvent

# Statuses that mean "the client said yes"; items and core fields are frozen.
AUTHORIZED_STATUSES = frozenset({
    S.CONTRACT_PENDING, S.CONTRACT_GENERATED, S.CONTRACT_SIGNED, S.AUTORIZADA, S.APROBADA,
})
EDITABLE_STATUSES = frozenset({S.PENDIENTE, S.NEGOCIACION, S.EN_CIERRE})
CLOSABLE_STATUSES = frozenset({S.PENDIENTE, S.NEGOCIACION})


class _PreviousStatus:
    """Marker target: go back to the status recorded before closing."""

    def __repr__(self):
        return 'PREVIOUS_STATUS'


PREVIOUS_STATUS = _PreviousStatus()


def _build_transitions():
    table = {}
    for status in EDITABLE_STATUSES:
        table[(status, E.UPDATE)] = status
    for status in (S.PENDIENTE, S.NEGOCIACION, S.ARCHIVADA):
        table[(status, E.DELETE)] = None  # row goes away
    for status in (S.PENDIENTE, S.NEGOCIACION, S.EN_CIERRE, S.CANCELADA):
        table[(status, E.AUTHORIZE)] = S.CONTRACT_PENDING
    for status in AUTHORIZED_STATUSES:
        table[(status, E.CANCEL)] = S.CANCELADA
        table[(status, E.CREATE_REVISION)] = status
        table[(status, E.REPLACE)] = S.CANCELADA
    for status in CLOSABLE_STATUSES:
        table[(status, E.PASS_TO_CLOSING)] = S.EN_CIERRE
    table[(S.EN_CIERRE, E.CANCEL_CLOSING)] = PREVIOUS_STATUS
    table[(S.PENDIENTE, E.NEGOTIATE)] = S.NEGOCIACION
    table[(S.PENDIENTE, E.AUTHORIZE_REVISION)] = S.APROBADA
    return table


# (status, event) -> new status. Pairs not listed are rejected.
TRANSITIONS = _build_transitions()

_REJECTION_MESSAGES = {
    E.UPDATE: 'No se puede actualizar una cotización en estado {status}',
    E.DELETE: 'No se puede eliminar una cotización en estado {status}',
    E.AUTHORIZE: 'La cotización ya está autorizada o no puede autorizarse (estado {status})',
    E.CANCEL: 'Solo se pueden cancelar cotizaciones autorizadas (estado actual: {status})',
    E.PASS_TO_CLOSING: 'Solo se pueden pasar a cierre cotizaciones pendientes o en negociación (estado actual: {status})',
    E.CANCEL_CLOSING: 'La cotización no está en proceso de cierre (estado actual: {status})',
    E.NEGOTIATE: 'Solo se pueden negociar cotizaciones pendientes (estado actual: {status})',
    E.CREATE_REVISION: 'Solo se pueden revisar cotizaciones autorizadas o aprobadas (estado actual: {status})',
    E.AUTHORIZE_REVISION: 'La revisión debe estar pendiente para autorizarse (estado actual: {status})',
    E.REPLACE: 'Solo una cotización autorizada puede ser reemplazada (estado actual: {status})',
}


def can_transition(status, event) -> bool:
    return (QuotationStatus(status), QuotationEvent(event)) in TRANSITIONS


def next_status(status, event, previous_status=None):
    """
    Resolve the status after ``event``.

    Raises:
        InvalidStateError: if the pair is not in the transition table, or a
            cancel-closing has no valid recorded status to go back to.
    """
    status = QuotationStatus(status)
    event = QuotationEvent(event)
    key = (status, event)
    if key not in TRANSITIONS:
        raise InvalidStateError(
            _REJECTION_MESSAGES[event].format(status=status.value),
            payload={'status': status.value, 'event': event.value}
        )
    target = TRANSITIONS[key]
    if target is PREVIOUS_STATUS:
        if previous_status is None:
            raise InvalidStateError('No hay un estado previo registrado para restaurar')
        target = QuotationStatus(previous_status)
        if target not in CLOSABLE_STATUSES:
            raise InvalidStateError(f'Estado previo inválido para restaurar: {target.value}')
    return target


class Quotation(Base):
    """
    Cotización: priced commercial offer for a deal (promise).

    Status only changes through ``apply_event`` so every move goes through
    the transition table.
    """

    __tablename__ = 'quotation'
    __table_args__ = (
        Index(
            'uq_quotation_promise_name_active', 'promise_id', 'name',
            unique=True,
            postgresql_where=text('NOT archived'),
            sqlite_where=text('archived = 0'),
        ),
    )

    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    promise_id = Column(BigIntegerType, ForeignKey('promise.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(14, 2), nullable=False, default=0)
    discount = Column(Numeric(14, 2), nullable=True)
    status = Column(
        SQLEnum(QuotationStatus, native_enum=False, values_callable=enum_values, length=30),
        nullable=False, default=QuotationStatus.PENDIENTE
    )
    order = Column(Integer, nullable=False, default=0)
    archived = Column(Boolean, nullable=False, default=False)
    visible_to_client = Column(Boolean, nullable=False, default=False)
    selected_by_prospect = Column(Boolean, nullable=False, default=False)
    selected_at = Column(DateTime(timezone=True), nullable=True)
    event_duration = Column(Numeric(6, 2), nullable=True)  # hours
    commercial_condition_id = Column(BigIntegerType, ForeignKey('commercial_condition.id'), nullable=True)

    # Negotiation metadata
    negotiation_original_price = Column(Numeric(14, 2), nullable=True)  # list price before negotiating
    negotiation_custom_price = Column(Numeric(14, 2), nullable=True)
    negotiation_extra_discount = Column(Numeric(14, 2), nullable=True)
    negotiation_notes = Column(Text, nullable=True)
    negotiation_created_at = Column(DateTime(timezone=True), nullable=True)

    # Revisions
    revision_of_id = Column(BigIntegerType, ForeignKey('quotation.id'), nullable=True, index=True)
    revision_number = Column(Integer, nullable=True)
    revision_status = Column(
        SQLEnum(RevisionStatus, native_enum=False, values_callable=enum_values, length=30),
        nullable=True
    )

    event_id = Column(BigIntegerType, ForeignKey('event.id'), nullable=True)

    # Commercial terms frozen at authorization
    condition_name_snapshot = Column(String(200), nullable=True)
    condition_discount_percentage_snapshot = Column(Numeric(5, 2), nullable=True)
    condition_advance_type_snapshot = Column(String(20), nullable=True)
    condition_advance_percentage_snapshot = Column(Numeric(5, 2), nullable=True)
    condition_advance_amount_snapshot = Column(Numeric(14, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    promise = relationship('Promise', back_populates='quotations')
    items = relationship(
        'QuotationItem',
        back_populates='quotation',
        cascade='all, delete-orphan',
        order_by='QuotationItem.order'
    )
    commercial_condition = relationship('CommercialCondition')
    negotiation_condition = relationship(
        'NegotiationCondition', back_populates='quotation',
        uselist=False, cascade='all, delete-orphan'
    )
    closing = relationship(
        'QuotationClosing', back_populates='quotation',
        uselist=False, cascade='all, delete-orphan'
    )
    event = relationship('Event', foreign_keys=[event_id])
    revision_of = relationship('Quotation', remote_side=[id], foreign_keys=[revision_of_id])

    def __repr__(self):
        return f"<Quotation(id={self.id}, name='{self.name}', status='{self.status}', price={self.price})>"

    @property
    def is_authorized(self):
        return self.status in AUTHORIZED_STATUSES

    @property
    def is_revision(self):
        return self.revision_of_id is not None

    def can(self, event):
        return can_transition(self.status, event)

    def ensure_can(self, event):
        """Raise InvalidStateError unless ``event`` is allowed from the current status."""
        next_status(self.status, event, self.closing.previous_status if self.closing else None)

    def apply_event(self, event, previous_status=None):
        """Move to the status the transition table dictates for ``event``."""
        new_status = next_status(self.status, event, previous_status)
        if new_status is not None:
            self.status = new_status
        return new_status
