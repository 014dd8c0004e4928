# listing_watch/extractors/factory.py

"""Extractor registry keyed on normalised site name."""

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any

from listing_watch.config.settings import Settings
from listing_watch.errors import ConfigurationError
from listing_watch.extractors.base_extractor import Extractor
from listing_watch.models.search import SiteConfig

logger = logging.getLogger("listing_watch.extractors")


@dataclass
class ValidationResult:
    """Outcome of validating a site configuration document."""

    errors: list[str] = field(default_factory=lambda: list[str]())
    warnings: list[str] = field(default_factory=lambda: list[str]())

    @property
    def is_valid(self) -> bool:
        return not self.errors


def normalise_site_name(name: str) -> str:
    """``'Facebook Marketplace'`` -> ``'facebook-marketplace'``."""
    return "-".join(name.lower().split())


def _registry() -> dict[str, dict[str, str]]:
    return {s["id"]: s for s in Settings.AVAILABLE_EXTRACTORS}


def _load_extractor_class(dotted_path: str) -> type[Extractor]:
    """Dynamically import an extractor class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Extractor] = getattr(module, class_name)
    return cls


def supported_sites() -> list[str]:
    return list(_registry())


def is_site_supported(site_name: str) -> bool:
    return normalise_site_name(site_name) in _registry()


def create_extractor(
    site_config: SiteConfig, **kwargs: Any,
) -> Extractor:
    """Instantiate the extractor registered for ``site_config.name``."""
    entry = _registry().get(normalise_site_name(site_config.name))
    if entry is None:
        raise ConfigurationError(
            f"No extractor registered for site '{site_config.name}'",
            {"supported": ", ".join(supported_sites())},
        )
    cls = _load_extractor_class(entry["extractor"])
    return cls(site_config, **kwargs)


def validate_site_config(site_config: SiteConfig) -> ValidationResult:
    """Check a site document for problems that would break extraction."""
    result = ValidationResult()

    if not site_config.name:
        result.errors.append("Site name is required")
    elif not is_site_supported(site_config.name):
        result.errors.append(
            f"Site '{site_config.name}' is not supported"
        )

    if not site_config.base_url:
        result.warnings.append("Base URL is not specified")

    if not site_config.search_config:
        result.errors.append(
            "At least one search configuration is required"
        )

    for key, search_config in site_config.search_config.items():
        if not search_config.get("selectors"):
            result.errors.append(
                f"Search config '{key}' is missing selectors"
            )
        data_fields: list[dict[str, Any]] = (
            search_config.get("data_fields") or []
        )
        if not data_fields:
            result.errors.append(
                f"Search config '{key}' is missing data fields"
            )
        names = {f.get("name") for f in data_fields}
        if "title" not in names:
            result.warnings.append(
                f"Search config '{key}' should have a title field"
            )
        if "url" not in names:
            result.warnings.append(
                f"Search config '{key}' should have a url field"
            )

    auth = site_config.authentication
    if auth.get("required") and not auth.get("credentials"):
        result.errors.append(
            f"Site '{site_config.name}' requires authentication credentials"
        )

    if result.errors:
        logger.warning(
            "Site config '%s' invalid: %s",
            site_config.name,
            "; ".join(result.errors),
        )
    return result
