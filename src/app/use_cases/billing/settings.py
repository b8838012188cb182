"""Billing settings

Explicit configuration handed to billing components at construction, built
once from ApplicationConfig.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from src.app.use_cases.billing.billing_calculator import PricingPolicy
from src.domain.project import CollectionMethod, PaymentMethodType, Project


@dataclass(frozen=True)
class BillingSettings:
    environment: str = "development"
    card_fee_rate: Decimal = Decimal("0.029")
    card_fee_fixed_cents: int = 30
    default_ach_discount_cents: int = 500
    show_processing_fee_line: bool = True
    sweep_enabled: bool = True
    sweep_due_days: int = 7
    sweep_interval_seconds: int = 86400
    sweep_notification_webhook: Optional[str] = None
    cron_secret: str = ""
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_version: Optional[str] = None
    company_name: str = "Operations HQ"
    company_address: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_config(cls, config) -> "BillingSettings":
        return cls(
            environment=config.ENVIRONMENT,
            card_fee_rate=Decimal(str(config.CARD_PROCESSING_FEE_RATE)),
            card_fee_fixed_cents=int(config.CARD_PROCESSING_FEE_FIXED_CENTS),
            default_ach_discount_cents=int(config.ACH_AUTO_PAY_DISCOUNT_CENTS),
            show_processing_fee_line=config.SHOW_PROCESSING_FEE_LINE,
            sweep_enabled=config.BILLING_SWEEP_ENABLED,
            sweep_due_days=int(config.BILLING_SWEEP_DUE_DAYS),
            sweep_interval_seconds=int(config.BILLING_SWEEP_INTERVAL_SECONDS),
            sweep_notification_webhook=config.SWEEP_NOTIFICATION_WEBHOOK,
            cron_secret=config.CRON_SECRET or "",
            stripe_secret_key=config.STRIPE_SECRET_KEY or "",
            stripe_webhook_secret=config.STRIPE_WEBHOOK_SECRET or "",
            stripe_api_version=config.STRIPE_API_VERSION,
            company_name=config.COMPANY_NAME,
            company_address=config.COMPANY_ADDRESS or "",
        )

    def pricing_policy(
        self,
        project: Project,
        collection_method: CollectionMethod = CollectionMethod.CHARGE_AUTOMATICALLY,
        show_processing_fee_line: Optional[bool] = None,
    ) -> PricingPolicy:
        """
        Pricing policy for one invoice of ``project``

        Invoices sent for manual payment are priced as offline: no card fee
        and no auto-pay discount.
        """
        payment_method_type = project.payment_method_type
        if collection_method == CollectionMethod.SEND_INVOICE:
            payment_method_type = PaymentMethodType.OFFLINE

        if project.ach_discount_cents is None:
            ach_discount_cents = self.default_ach_discount_cents
        else:
            ach_discount_cents = project.ach_discount_cents

        if show_processing_fee_line is None:
            show_processing_fee_line = self.show_processing_fee_line

        return PricingPolicy(
            payment_method_type=payment_method_type,
            auto_pay_enabled=project.auto_pay_enabled,
            ach_discount_cents=ach_discount_cents,
            show_processing_fee_line=show_processing_fee_line,
            card_fee_rate=self.card_fee_rate,
            card_fee_fixed_cents=self.card_fee_fixed_cents,
        )
