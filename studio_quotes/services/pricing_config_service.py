"""Pricing configuration store adapter."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from studio_quotes.exceptions import ConfigurationMissingError
from studio_quotes.models import PricingConfiguration
from studio_quotes.services.pricing_service import PricingCoefficients

logger = logging.getLogger(__name__)


def find_config(session: Session, tenant_id: int) -> Optional[PricingCoefficients]:
    """Active coefficients of the tenant, or None."""
    config = session.query(PricingConfiguration).filter(
        PricingConfiguration.tenant_id == tenant_id,
        PricingConfiguration.active.is_(True)
    ).order_by(PricingConfiguration.id.desc()).first()
    if not config:
        return None
    return PricingCoefficients.from_config(config)


def get_config(session: Session, tenant_id: int) -> PricingCoefficients:
    """
    Active coefficients of the tenant.

    Raises:
        ConfigurationMissingError: if the tenant has no active configuration.
    """
    coefficients = find_config(session, tenant_id)
    if coefficients is None:
        logger.warning(f"[PRICING] Tenant {tenant_id} sin configuración de precios activa")
        raise ConfigurationMissingError(
            f'No hay configuración de precios activa para el estudio {tenant_id}'
        )
    return coefficients
