"""Template resolution, versioning and cache invalidation."""

from __future__ import annotations

import logging
import uuid
from typing import Any, List, Mapping, Optional

from ..contracts import utcnow
from ..errors import TemplateNotFound
from ..persistence import FactoryRepository, PromptTemplate, get_repository
from .cache import TemplateCache
from .categories import PromptCategory
from .defaults import DEFAULT_NAMES, DEFAULT_TEMPLATES
from .renderer import render_template

logger = logging.getLogger(__name__)


class TemplateService:
    """Resolves the active instruction template of each category.

    Lookups never fail: when the store has no active template, or cannot be
    reached, the caller's default or the compiled-in default is used. Every
    write path invalidates the affected cache entries once the store has
    been updated.
    """

    def __init__(
        self,
        repository: FactoryRepository | None = None,
        cache: TemplateCache | None = None,
    ) -> None:
        self._repository = repository or get_repository()
        self._cache = cache if cache is not None else TemplateCache()

    @property
    def cache(self) -> TemplateCache:
        return self._cache

    async def get_template(
        self, category: PromptCategory | str, default: Optional[str] = None
    ) -> str:
        category = PromptCategory(category)
        cached = self._cache.get(category.value)
        if cached is not None:
            return cached

        fallback = default if default is not None else DEFAULT_TEMPLATES[category]
        token = self._cache.token(category.value)
        try:
            stored = await self._repository.get_active_template(category.value)
        except Exception as e:
            logger.warning(f"Failed to load template for {category.value}, using default: {e}")
            return fallback
        if stored is None:
            logger.debug(f"No active template for {category.value}, using default")
            return fallback
        self._cache.put(category.value, stored.template, token)
        return stored.template

    async def render(
        self,
        category: PromptCategory | str,
        variables: Mapping[str, Any],
        default: Optional[str] = None,
    ) -> str:
        template = await self.get_template(category, default)
        return render_template(template, variables)

    async def list_templates(
        self, category: PromptCategory | str | None = None
    ) -> List[PromptTemplate]:
        return await self._repository.list_templates(
            PromptCategory(category).value if category else None
        )

    async def get_stored_template(self, template_id: str) -> PromptTemplate:
        template = await self._repository.get_template(template_id)
        if template is None:
            raise TemplateNotFound(f"Template not found: {template_id}")
        return template

    async def save_template(
        self,
        category: PromptCategory | str,
        template: str,
        name: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> PromptTemplate:
        """Update ``template_id`` in place, or store a new active version.

        A new version deactivates every other template of the category.
        """
        category = PromptCategory(category)
        try:
            existing = (
                await self._repository.get_template(template_id) if template_id else None
            )
            if existing is not None:
                if existing.category != category.value:
                    raise ValueError(
                        f"Template {template_id} belongs to {existing.category}, not {category.value}"
                    )
                existing.template = template
                existing.name = name or existing.name
                existing.updated_at = utcnow()
                await self._repository.save_template(existing)
                logger.info(f"Updated template {existing.id} ({category.value})")
                return existing

            versions = await self._repository.list_templates(category.value)
            await self._deactivate(versions)
            record = PromptTemplate(
                id=template_id or str(uuid.uuid4()),
                name=name or DEFAULT_NAMES[category],
                category=category.value,
                template=template,
                is_active=True,
                version=max((t.version for t in versions), default=0) + 1,
            )
            await self._repository.save_template(record)
            logger.info(
                f"Saved template {record.id} as version {record.version} of {category.value}"
            )
            return record
        finally:
            self._cache.invalidate(category.value)

    async def activate_template(self, template_id: str) -> PromptTemplate:
        """Make a retained version the active one of its category."""
        record = await self.get_stored_template(template_id)
        try:
            others = [
                t for t in await self._repository.list_templates(record.category)
                if t.id != record.id
            ]
            await self._deactivate(others)
            record.is_active = True
            record.updated_at = utcnow()
            await self._repository.save_template(record)
        finally:
            self._cache.invalidate(record.category)
        logger.info(f"Activated template {record.id} (version {record.version} of {record.category})")
        return record

    async def reset_template(self, category: PromptCategory | str) -> int:
        """Deactivate every stored version so the default applies again.

        Returns the number of templates that were deactivated.
        """
        category = PromptCategory(category)
        try:
            count = await self._deactivate(
                await self._repository.list_templates(category.value)
            )
        finally:
            self._cache.invalidate(category.value)
        logger.info(f"Reset {category.value} to its default template")
        return count

    async def reset_all(self) -> None:
        """Delete every stored template and drop the whole cache."""
        try:
            await self._repository.delete_templates()
        finally:
            self._cache.invalidate()
        logger.info("Reset all templates to defaults")

    async def seed_defaults(self) -> int:
        """Store the compiled-in defaults when the store holds no templates."""
        if await self._repository.list_templates():
            return 0
        try:
            for category, template in DEFAULT_TEMPLATES.items():
                await self._repository.save_template(
                    PromptTemplate(
                        id=str(uuid.uuid4()),
                        name=DEFAULT_NAMES[category],
                        category=category.value,
                        template=template,
                    )
                )
        finally:
            self._cache.invalidate()
        logger.info(f"Seeded {len(DEFAULT_TEMPLATES)} default templates")
        return len(DEFAULT_TEMPLATES)

    def clear_cache(self, category: PromptCategory | str | None = None) -> None:
        self._cache.invalidate(PromptCategory(category).value if category else None)

    async def _deactivate(self, templates: List[PromptTemplate]) -> int:
        count = 0
        for template in templates:
            if template.is_active:
                template.is_active = False
                template.updated_at = utcnow()
                await self._repository.save_template(template)
                count += 1
        return count
