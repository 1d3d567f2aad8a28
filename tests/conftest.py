import pytest
from datetime import date
from decimal import Decimal
import uuid

from studio_quotes import create_app
from studio_quotes.database import db_session, get_session, init_engine, create_all, drop_all
from studio_quotes.models import (
    Tenant, PricingConfiguration, CatalogSection, CatalogCategory, CatalogItem,
    BillingType, ProfitType, Promise, CommercialCondition, AdvanceType
)
from studio_quotes.services import quotation_service


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def database():
    """Fresh in-memory database for every test."""
    init_engine('sqlite://')
    create_all()
    yield
    db_session.remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def tenant(session):
    suffix = str(uuid.uuid4())[:8]
    tenant = Tenant(slug=f'estudio-{suffix}', name=f'Estudio {suffix}', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def other_tenant(session):
    """Second tenant for isolation tests."""
    suffix = str(uuid.uuid4())[:8]
    tenant = Tenant(slug=f'otro-{suffix}', name=f'Otro Estudio {suffix}', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def pricing_config(session, tenant):
    """30 % service margin, 20 % product margin, 5 % commission, 5 % markup."""
    config = PricingConfiguration(
        tenant_id=tenant.id,
        service_margin=Decimal('0.30'),
        product_margin=Decimal('0.20'),
        sales_commission=Decimal('0.05'),
        markup=Decimal('0.05'),
        active=True
    )
    session.add(config)
    session.commit()
    return config


@pytest.fixture(scope='function')
def catalog(session, tenant):
    """
    Two sections with one category each; returns {name: catalog item id}.

    Fotografía (order 1) > Cobertura (order 1):
        Sesión de fotos  cost 100, service, per service
        Cobertura por hora  cost 200, service, per hour
        Álbum impreso  cost 100, product, per unit
    Video (order 0) > Edición (order 1):
        Asistente de video  cost 40 + expense 10, service, per service
    """
    photo = CatalogSection(tenant_id=tenant.id, name='Fotografía', order=1)
    video = CatalogSection(tenant_id=tenant.id, name='Video', order=0)
    session.add_all([photo, video])
    session.flush()

    coverage = CatalogCategory(tenant_id=tenant.id, section_id=photo.id, name='Cobertura', order=1)
    editing = CatalogCategory(tenant_id=tenant.id, section_id=video.id, name='Edición', order=1)
    session.add_all([coverage, editing])
    session.flush()

    items = [
        CatalogItem(tenant_id=tenant.id, category_id=coverage.id, name='Sesión de fotos',
                    cost=Decimal('100'), expense=Decimal('0'), utility_type=ProfitType.SERVICE,
                    billing_type=BillingType.SERVICE, order=2),
        CatalogItem(tenant_id=tenant.id, category_id=coverage.id, name='Cobertura por hora',
                    cost=Decimal('200'), expense=Decimal('0'), utility_type=ProfitType.SERVICE,
                    billing_type=BillingType.HOUR, order=1),
        CatalogItem(tenant_id=tenant.id, category_id=coverage.id, name='Álbum impreso',
                    cost=Decimal('100'), expense=Decimal('0'), utility_type=ProfitType.PRODUCT,
                    billing_type=BillingType.UNIT, order=3),
        CatalogItem(tenant_id=tenant.id, category_id=editing.id, name='Asistente de video',
                    cost=Decimal('40'), expense=Decimal('10'), utility_type=ProfitType.SERVICE,
                    billing_type=BillingType.SERVICE, order=1),
    ]
    session.add_all(items)
    session.commit()
    return {item.name: item.id for item in items}


@pytest.fixture(scope='function')
def promise(session, tenant):
    """Deal with a confirmed event date."""
    promise = Promise(tenant_id=tenant.id, name='Boda Pérez', event_date=date(2026, 12, 12))
    session.add(promise)
    session.commit()
    return promise


@pytest.fixture(scope='function')
def condition(session, tenant):
    """10 % discount, 30 % advance."""
    condition = CommercialCondition(
        tenant_id=tenant.id,
        name='Contado',
        discount_percentage=Decimal('10'),
        advance_type=AdvanceType.PERCENTAGE,
        advance_percentage=Decimal('30'),
        active=True
    )
    session.add(condition)
    session.commit()
    return condition


@pytest.fixture(scope='function')
def make_quotation(session, tenant, promise, pricing_config, catalog):
    """Factory: create a quotation through the service and return its id."""
    def _make(name='Paquete Básico', selections=None, **kwargs):
        if selections is None:
            selections = {catalog['Sesión de fotos']: 1}
        result = quotation_service.create_quotation(
            session, tenant.id, promise.id, name, selections=selections, **kwargs
        )
        assert result.success, result.error
        return result.data['id']
    return _make


@pytest.fixture(scope='function')
def authorized_quotation(session, tenant, promise, make_quotation):
    """A quotation authorized at its own price; returns its id."""
    quotation_id = make_quotation('Paquete Autorizado')
    quotation = quotation_service.get_quotation(session, tenant.id, quotation_id)
    result = quotation_service.authorize_quotation(
        session, tenant.id, quotation_id, promise.id, quotation.price
    )
    assert result.success, result.error
    return quotation_id
