"""
Configuration Loader

Loads YAML configuration files for promotional terms, size normalization,
SEO settings, pricing defaults and image processing settings.
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml


def _get_config_dir() -> Path:
    """Get the config directory path."""
    # Try relative to this file first
    module_dir = Path(__file__).parent.parent.parent
    config_dir = module_dir / 'config'

    if config_dir.exists():
        return config_dir

    # Try current working directory
    cwd_config = Path.cwd() / 'config'
    if cwd_config.exists():
        return cwd_config

    raise FileNotFoundError(
        f"Config directory not found. Tried: {config_dir}, {cwd_config}"
    )


def load_config(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of the config file (e.g., 'size_map.yaml')

    Returns:
        Parsed YAML content as dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = _get_config_dir() / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_promotional_terms() -> List[str]:
    """
    Load promotional terms stripped from listing titles.

    Returns:
        List of lowercase terms (single words or phrases)

    Example:
        ['free shipping', 'dropship', 'hot sale', ...]
    """
    config = load_config('promotional_terms.yaml')
    return [str(term).lower() for term in config.get('promotional_terms', [])]


def load_brand_suffix_patterns() -> List[str]:
    """
    Load regex patterns for seller/brand suffixes stripped from titles.

    Returns:
        List of regular expression strings (applied case-insensitively)
    """
    config = load_config('promotional_terms.yaml')
    return [str(pattern) for pattern in config.get('brand_suffix_patterns', [])]


def load_size_map() -> Dict[str, str]:
    """
    Load size normalization rules.

    Returns:
        Dictionary mapping lowercase size token to canonical form

    Example:
        {
            'xs': 'XS',
            '2t': '2T',
            '0-3 months': '0-3M',
            ...
        }
    """
    config = load_config('size_map.yaml')
    return {str(k).lower(): str(v) for k, v in config.get('size_map', {}).items()}


def load_seo_settings() -> Dict[str, Any]:
    """
    Load SEO and merchandising text settings.

    Returns:
        Dictionary with store_name, title/description limits, tag settings
        and fallback copy.
    """
    return load_config('seo_settings.yaml')


def load_pricing_defaults() -> Dict[str, Any]:
    """
    Load pricing defaults applied when a category leaves a field unset.

    Returns:
        Dictionary with markup_factor, shipping_buffer, platform_fee,
        rounding_increment and validation thresholds.
    """
    return load_config('pricing_defaults.yaml')


def load_image_settings() -> Dict[str, Any]:
    """
    Load image processing settings.

    Returns:
        Dictionary with max_width, max_height, quality, max_images,
        concurrency and timeouts.
    """
    return load_config('image_processing.yaml')
