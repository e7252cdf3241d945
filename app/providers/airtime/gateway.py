# app/providers/airtime/gateway.py
from __future__ import annotations

import dataclasses
import logging
from typing import Mapping

from app.providers.base import AirtimeProvider, DispatchResult
from services.metrics import increment_dispatch_attempt
from services.redaction import redact_msisdn

logger = logging.getLogger("airtime.gateway")


class AirtimeGateway:
    """
    Routes a dispatch to the provider configured for the carrier.

    dispatch() never raises: every transport or provider failure comes back
    as a FAILED DispatchResult so the caller can run compensation.
    """

    def __init__(self, providers: Mapping[str, AirtimeProvider], carrier_providers: Mapping[str, str]):
        self.providers = {k.strip().upper(): v for k, v in providers.items()}
        self.carrier_providers = {k.strip().upper(): v.strip().upper() for k, v in carrier_providers.items()}

    def provider_for(self, carrier: str | None) -> str | None:
        return self.carrier_providers.get(str(getattr(carrier, "value", carrier) or "").strip().upper())

    def dispatch(self, carrier: str, msisdn: str, amount_cents: int, *, reference: str) -> DispatchResult:
        provider_name = self.provider_for(carrier)
        if not provider_name:
            increment_dispatch_attempt("none", "no_provider")
            return DispatchResult.failed(f"No provider configured for carrier {carrier}")

        provider = self.providers.get(provider_name)
        if provider is None:
            increment_dispatch_attempt(provider_name, "not_configured")
            return DispatchResult.failed(f"Provider {provider_name} is not available", provider=provider_name)

        logger.info(
            "dispatch start provider=%s carrier=%s msisdn=%s amount_cents=%s reference=%s",
            provider_name,
            carrier,
            redact_msisdn(msisdn),
            amount_cents,
            reference,
        )
        try:
            result = provider.send_airtime(msisdn=msisdn, amount_cents=amount_cents, reference=reference)
        except Exception as exc:
            logger.exception("dispatch raised provider=%s reference=%s", provider_name, reference)
            result = DispatchResult.failed(
                f"Provider error: {exc}", provider=provider_name, response={"exception": type(exc).__name__}
            )

        if not isinstance(result, DispatchResult):
            result = DispatchResult.failed("Malformed provider result", provider=provider_name)
        if not result.provider:
            result = dataclasses.replace(result, provider=provider_name)

        increment_dispatch_attempt(provider_name, "success" if result.ok else "failed")
        logger.info(
            "dispatch end provider=%s status=%s provider_ref=%s reference=%s error=%s",
            provider_name,
            result.status,
            result.provider_ref,
            reference,
            result.error,
        )
        return result
