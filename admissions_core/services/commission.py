# admissions_core/services/commission.py
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.utils.module_loading import import_string

from admissions_core.models import Application, Commission

logger = logging.getLogger(__name__)

DEFAULT_TIER_RATES = {
    "bronze": "0.10",
    "silver": "0.125",
    "gold": "0.15",
    "platinum": "0.18",
}

_CENT = Decimal("0.01")


class CommissionCalculator:
    """
    Collaborator invoked once when an application enters the commission stage.

    Implementations return an unsaved Commission; the effect interpreter
    persists it.
    """

    def calculate(self, application: Application, effective_date) -> Commission:
        raise NotImplementedError


class TierRateCommissionCalculator(CommissionCalculator):
    """
    Flat percentage of tuition by partner tier, minus a processing fee.
    """

    def __init__(self, tier_rates=None, processing_fee=None):
        rates = tier_rates or getattr(settings, "ADMISSIONS_COMMISSION_TIER_RATES", None) or DEFAULT_TIER_RATES
        self.tier_rates = {k: Decimal(str(v)) for k, v in rates.items()}
        fee = processing_fee
        if fee is None:
            fee = getattr(settings, "ADMISSIONS_COMMISSION_PROCESSING_FEE", "0.02")
        self.processing_fee = Decimal(str(fee))

    def calculate(self, application: Application, effective_date) -> Commission:
        tier = application.partner_tier or "bronze"
        rate = self.tier_rates.get(tier, self.tier_rates.get("bronze", Decimal("0")))
        tuition = Decimal(application.tuition_fee or 0)

        gross = tuition * rate
        fee = gross * self.processing_fee
        net = (gross - fee).quantize(_CENT, rounding=ROUND_HALF_UP)

        breakdown = [
            f"Base rate ({tier}): {rate * 100:.1f}%",
            f"Gross commission: {application.currency} {gross.quantize(_CENT)}",
        ]
        if fee:
            breakdown.append(f"Processing fee ({self.processing_fee * 100:.1f}%): -{fee.quantize(_CENT)}")
        breakdown.append(f"Net commission: {application.currency} {net}")

        return Commission(
            application=application,
            partner_code=application.partner_code,
            partner_tier=tier,
            tuition_fee=tuition,
            commission_rate=rate,
            commission_amount=net,
            currency=application.currency,
            enrollment_date=effective_date,
            breakdown=breakdown,
        )


def get_commission_calculator() -> CommissionCalculator:
    path = getattr(
        settings,
        "ADMISSIONS_COMMISSION_CALCULATOR",
        "admissions_core.services.commission.TierRateCommissionCalculator",
    )
    return import_string(path)()
