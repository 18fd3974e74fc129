"""Resolution of per-call tenant profiles."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bridge.errors import UnknownTenantError
from config.settings import Settings, get_settings
from prompts.loader import render_prompt

LOGGER = logging.getLogger(__name__)

DEFAULT_TENANT = "default"


@dataclass(frozen=True)
class TenantProfile:
    """Immutable settings applied to one call."""

    tenant_id: str
    business_name: str
    city: str
    voice: str
    greeting: str
    instructions: str


class TenantDirectory:
    """Maps short tenant identifiers to immutable profiles.

    Profiles are built once from settings; callers receive the same frozen
    value for every call of a tenant.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._profiles: dict[str, TenantProfile] = {}

        s = self._settings
        self._profiles[DEFAULT_TENANT] = self._build(
            DEFAULT_TENANT,
            business_name=s.business_name,
            city=s.business_city,
            voice=None,
            greeting=None,
            instructions=None,
        )
        for tenant_id, cfg in s.tenants.items():
            self._profiles[tenant_id] = self._build(
                tenant_id,
                business_name=cfg.business_name,
                city=cfg.city,
                voice=cfg.voice,
                greeting=cfg.greeting,
                instructions=cfg.instructions,
            )

    def _build(
        self,
        tenant_id: str,
        *,
        business_name: str,
        city: str,
        voice: str | None,
        greeting: str | None,
        instructions: str | None,
    ) -> TenantProfile:
        s = self._settings
        prompt = instructions or render_prompt(
            "receptionist.txt",
            business_name=business_name,
            city=city,
            marker=s.booking_marker,
        )
        return TenantProfile(
            tenant_id=tenant_id,
            business_name=business_name,
            city=city,
            voice=voice or s.openai_voice,
            greeting=greeting or s.greeting_instructions,
            instructions=prompt,
        )

    def known(self) -> list[str]:
        return sorted(self._profiles)

    def resolve(self, tenant_id: str | None) -> TenantProfile:
        key = (tenant_id or "").strip() or DEFAULT_TENANT
        profile = self._profiles.get(key)
        if profile is None:
            LOGGER.warning("Unknown tenant requested: %s", key)
            raise UnknownTenantError(f"Unknown tenant: {key}")
        return profile
