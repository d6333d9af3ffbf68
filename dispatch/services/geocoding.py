"""Address geocoding through a Nominatim-compatible search API."""

import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds
MIN_QUERY_LENGTH = 3
MAX_SUGGESTIONS = 10


class GeocodingError(ValueError):
    pass


def _search(query, **extra):
    params = {
        'format': 'json',
        'q': query,
        'accept-language': current_app.config['GEOCODER_LANGUAGE'],
    }
    country_codes = current_app.config.get('GEOCODER_COUNTRY_CODES')
    if country_codes:
        params['countrycodes'] = country_codes
    params.update(extra)

    response = requests.get(
        current_app.config['GEOCODER_URL'],
        params=params,
        headers={'User-Agent': current_app.config['GEOCODER_USER_AGENT']},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return response.json() or []


def geocode_address(address: str) -> dict:
    """Resolve an address to coordinates.

    Returns:
        dict with 'latitude', 'longitude' and 'display_name'

    Raises:
        GeocodingError: if the address is unknown or the service fails
    """
    try:
        results = _search(address, limit=1)
    except requests.RequestException as e:
        logger.error(f'Geocoding request failed for {address!r}: {e}')
        raise GeocodingError('Geocoding service is unavailable. Try again later.')

    if not results:
        raise GeocodingError('Address not found. Check that it is correct.')

    best = results[0]
    try:
        return {
            'latitude': float(best['lat']),
            'longitude': float(best['lon']),
            'display_name': best.get('display_name', address),
        }
    except (KeyError, TypeError, ValueError):
        logger.error(f'Geocoder returned an unusable result for {address!r}: {best}')
        raise GeocodingError('Address not found. Check that it is correct.')


def format_address(address_data: dict) -> str:
    """Short label for a search result: locality, road, house number."""
    if not address_data:
        return ''

    address = address_data.get('address')
    if address:
        parts = []
        locality = address.get('city') or address.get('town') or address.get('village')
        if locality:
            parts.append(locality)
        if address.get('road'):
            parts.append(address['road'])
        if address.get('house_number'):
            parts.append(address['house_number'])
        if parts:
            return ', '.join(parts)

    display_name = address_data.get('display_name')
    if display_name:
        return display_name.split(',')[0]
    return ''


def suggest_addresses(query: str, limit: int = MAX_SUGGESTIONS) -> list[dict]:
    """Address suggestions for a partially typed query.

    Short queries and service failures give an empty list; suggestions are
    a convenience and never block task creation.
    """
    query = (query or '').strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    try:
        results = _search(query, addressdetails=1, limit=min(limit, MAX_SUGGESTIONS))
    except requests.RequestException as e:
        logger.warning(f'Address suggestions failed for {query!r}: {e}')
        return []

    suggestions = []
    for result in results:
        try:
            suggestions.append({
                'label': format_address(result),
                'display_name': result.get('display_name', ''),
                'latitude': float(result['lat']),
                'longitude': float(result['lon']),
            })
        except (KeyError, TypeError, ValueError):
            continue
    return suggestions
