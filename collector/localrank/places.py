"""Google Geocoding / Places API クライアント.

取得手順:
  1. 郵便番号をジオコーディングして中心座標を得る
  2. 中心座標 + 半径 + キーワードで Nearby Search
  3. 返却順に 1 始まりの順位を振る
"""

from __future__ import annotations

import logging
import math

import requests

from localrank.config import (
    DEFAULT_RADIUS_KM,
    GEOCODE_URL,
    GOOGLE_MAPS_API_KEY,
    MIN_RADIUS_KM,
    NEARBY_SEARCH_URL,
    REQUEST_TIMEOUT,
)
from localrank.models import Location, Place, RankedPlace, SearchResponse

logger = logging.getLogger(__name__)


class PlacesError(Exception):
    """ジオコーディング・店舗検索の失敗."""


def _require_api_key() -> str:
    if not GOOGLE_MAPS_API_KEY:
        raise PlacesError("Missing Google API key. Set GOOGLE_MAPS_API_KEY (preferred).")
    return GOOGLE_MAPS_API_KEY


def _get_json(url: str, params: dict) -> dict:
    try:
        resp = requests.get(url, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        raise PlacesError(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise PlacesError(f"Invalid JSON from {url}: {e}") from e


def radius_meters(radius_km: float | None) -> int:
    """検索半径 (km) を Places API 用のメートルに変換する. 最小 0.5km."""
    if radius_km is None:
        radius_km = DEFAULT_RADIUS_KM
    # 0.5 は切り上げ
    return math.floor(max(radius_km, MIN_RADIUS_KM) * 1000 + 0.5)


def geocode_postcode(postcode: str) -> Location:
    """郵便番号の中心座標を取得する."""
    data = _get_json(GEOCODE_URL, {"address": postcode, "key": _require_api_key()})
    status = data.get("status")
    results = data.get("results") or []
    if status != "OK" or not results:
        message = data.get("error_message") or "Unable to find coordinates for that postcode."
        raise PlacesError(f"Geocoding error ({status}): {message}")

    loc = results[0]["geometry"]["location"]
    return Location(lat=loc["lat"], lng=loc["lng"])


def _parse_place(raw: dict) -> Place:
    loc = raw.get("geometry", {}).get("location", {})
    return Place(
        place_id=raw["place_id"],
        name=raw.get("name", ""),
        location=Location(lat=loc.get("lat"), lng=loc.get("lng")),
        rating=raw.get("rating"),
        user_ratings_total=raw.get("user_ratings_total"),
        vicinity=raw.get("vicinity"),
    )


def fetch_places_by_postcode(
    postcode: str, keyword: str, radius_km: float | None = None
) -> SearchResponse:
    """郵便番号周辺でキーワード検索した店舗を返却順のまま取得する.

    Raises:
        PlacesError: API キー未設定、通信失敗、API が OK 以外を返した場合。
    """
    center = geocode_postcode(postcode)
    params = {
        "location": f"{center.lat},{center.lng}",
        "radius": str(radius_meters(radius_km)),
        "keyword": keyword,
        "key": _require_api_key(),
    }
    data = _get_json(NEARBY_SEARCH_URL, params)
    status = data.get("status")
    if status != "OK":
        message = data.get("error_message") or "Unable to fetch nearby businesses."
        raise PlacesError(f"Places error ({status}): {message}")

    places = [_parse_place(raw) for raw in data.get("results", [])]
    logger.info(
        "店舗検索: postcode=%s, keyword=%s, %d 件", postcode, keyword, len(places)
    )
    return SearchResponse(center=center, places=places)


def rank_places(places: list[Place]) -> list[RankedPlace]:
    """返却順に 1 始まりの連番で順位を振る."""
    return [
        RankedPlace(
            place_id=p.place_id,
            name=p.name,
            rank=i,
            rating=p.rating,
            user_ratings_total=p.user_ratings_total,
            vicinity=p.vicinity,
            lat=p.location.lat,
            lng=p.location.lng,
        )
        for i, p in enumerate(places, start=1)
    ]
