"""
Site settings binding.

The store keeps settings as key/value rows; the binding folds them into the
fixed-shape SiteSettingsForm and saves the form back one key at a time.
"""
import logging
from typing import Iterable, Optional

from portfolio_cms.bindings.base import ActionResult, ActionStatus, Binding
from portfolio_cms.schemas import SiteSettingsForm
from portfolio_cms.services.content_store import SITE_SETTINGS

logger = logging.getLogger(__name__)

SETTING_KEYS = tuple(SiteSettingsForm.model_fields)


def fold_settings(rows: Iterable[dict]) -> SiteSettingsForm:
    """
    Map key/value rows onto the form. Unknown keys are ignored; missing or
    empty values fall back to the form's defaults.
    """
    values = {}
    for row in rows:
        key = row.get("key")
        if key in SETTING_KEYS and row.get("value"):
            values[key] = row["value"]
    return SiteSettingsForm(**values)


def settings_form(rows: Iterable[dict]) -> SiteSettingsForm:
    """Editable values: stored keys as saved (empty stays empty), missing keys at their defaults."""
    values = {}
    for row in rows:
        key = row.get("key")
        if key in SETTING_KEYS:
            values[key] = row.get("value") or ""
    return SiteSettingsForm(**values)


class SiteSettingsBinding(Binding[SiteSettingsForm]):
    """
    Saved settings plus an editable form.

    The snapshot is what the public site shows, with defaults filled in.
    The form is reset from the stored values on mount and after a
    successful save; a failed save keeps the attempted values.
    """

    collections = (SITE_SETTINGS,)

    def __init__(self, store, subscriptions, notifier):
        super().__init__(store, subscriptions, notifier)
        self.form = SiteSettingsForm()
        self._stored = SiteSettingsForm()

    def initial_state(self) -> SiteSettingsForm:
        return SiteSettingsForm()

    async def _fetch(self):
        return await self.store.query(SITE_SETTINGS)

    def _build(self, rows) -> SiteSettingsForm:
        self._stored = settings_form(rows)
        return fold_settings(rows)

    async def mount(self) -> SiteSettingsForm:
        snapshot = await super().mount()
        self.form = self._stored.model_copy()
        return snapshot

    def edit(self, form: SiteSettingsForm) -> None:
        self.form = form.model_copy()

    async def save(self, form: Optional[SiteSettingsForm] = None) -> ActionResult:
        """
        Upsert every key of the form in field order.
        Not atomic: a failure stops the loop and earlier keys stay saved.
        """
        if form is not None:
            self.edit(form)
        attempted = self.form.model_copy()

        for key, value in attempted.model_dump().items():
            result = await self.store.upsert(SITE_SETTINGS, {"key": key, "value": value}, on_conflict="key")
            if not result.ok:
                logger.error(f"Saving setting {key} failed: {result.error}")
                return self._fail(result.error.message)

        message = "Settings saved successfully!"
        self.notifier.success(message)
        await self.refresh()
        self.form = self._stored.model_copy()
        return ActionResult(ActionStatus.SUCCESS, message, self._snapshot)
