"""
Bookable records that hang off an imported accommodation type: the rate with
its season price, one accommodation unit and fee-based services.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, List, Mapping

from flask_app.importer.log import ImportLog
from flask_app.importer.storage import ContentStore
from flask_app.models import RecordType

from .idempotency import LISTING_UID_META, resolve_import_target
from .resolve import coerce_number, round_half_up

ROOM_TYPE_LINK_KEYS = ("mphb_room_type_id", "mphb_room_type", "_mphb_room_type_id")
SERVICE_KEY_META = "_hostfully_service_key"
SERVICES_META = "mphb_services"
SEASON_PRICES_META = "mphb_season_prices"
DEFAULT_CURRENCY = "ZAR"
DEFAULT_TITLE = "Imported Property"
ALL_YEAR_TITLE = "All Year"
ALL_YEAR_SLUG = "all-year"

FEE_SERVICES = (
    ("cleaningFee", "Cleaning Fee"),
    ("securityDeposit", "Security Deposit"),
    ("extraGuestFee", "Extra Guest Fee"),
)


def build_season_price(daily_rate: float, adults: int, children: int) -> Dict[str, Any]:
    return {
        "periods": [1],
        "prices": [float(daily_rate)],
        "base_adults": int(adults),
        "base_children": int(children),
        "extra_adult_prices": [""],
        "extra_child_prices": [""],
        "enable_variations": False,
        "variations": [],
    }


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class BookingRecords:
    """Upserts rates, units, seasons and services for an accommodation type."""

    def __init__(self, store: ContentStore, *, today: Callable[[], date] = date.today):
        self.store = store
        self.today = today

    # Rate and unit --------------------------------------------------------------

    def upsert_rate(
        self,
        room_type_id: int,
        listing: Mapping[str, Any],
        daily_rate: float,
        adults: int,
        children: int,
        log: ImportLog,
    ) -> int:
        listing_uid = str(listing.get("uid") or "")
        if not listing_uid:
            return 0

        target = resolve_import_target(self.store, record_type=RecordType.RATE.value, listing_uid=listing_uid)
        title = f"Standard – {listing.get('name') or DEFAULT_TITLE}"
        rate = self.store.save_record(RecordType.RATE.value, record_id=target.record_id, title=title)
        log.add(f"{'Updated' if target.action == 'update' else 'Created'} rate OK: {rate.id}")

        pricing = listing.get("pricing") if isinstance(listing.get("pricing"), Mapping) else {}
        self.store.set_meta(rate.id, LISTING_UID_META, listing_uid)
        self.store.set_meta(rate.id, "mphb_price", str(round_half_up(daily_rate)))
        self.store.set_meta(rate.id, "mphb_currency", str(pricing.get("currency") or DEFAULT_CURRENCY).strip())
        self._link_room_type(rate.id, room_type_id)

        season_id = self.default_season_id(log)
        if season_id:
            self.upsert_season_price(rate.id, season_id, daily_rate, adults, children, log)
        return rate.id

    def upsert_unit(self, room_type_id: int, listing: Mapping[str, Any], log: ImportLog) -> int:
        listing_uid = str(listing.get("uid") or "")
        if not listing_uid:
            return 0

        target = resolve_import_target(self.store, record_type=RecordType.ROOM.value, listing_uid=listing_uid)
        title = f"Unit 1 – {listing.get('name') or DEFAULT_TITLE}"
        unit = self.store.save_record(RecordType.ROOM.value, record_id=target.record_id, title=title)
        log.add(f"{'Updated' if target.action == 'update' else 'Created'} accommodation unit OK: {unit.id}")

        self.store.set_meta(unit.id, LISTING_UID_META, listing_uid)
        self._link_room_type(unit.id, room_type_id)
        return unit.id

    def _link_room_type(self, record_id: int, room_type_id: int) -> None:
        for key in ROOM_TYPE_LINK_KEYS:
            self.store.set_meta(record_id, key, int(room_type_id))

    # Seasons --------------------------------------------------------------------

    def default_season_id(self, log: ImportLog) -> int:
        """
        Pick the season rate prices are attached to.

        Prefers a season whose title or slug names "all year"/"all season",
        otherwise the first by title. Creates "All Year" when no season exists.
        """
        seasons = self.store.records_of_type(RecordType.SEASON.value)
        if not seasons:
            season = self.store.save_record(RecordType.SEASON.value, title=ALL_YEAR_TITLE, slug=ALL_YEAR_SLUG)
            self.ensure_all_year_meta(season.id, log)
            log.add(f'Season price: auto-created season "{ALL_YEAR_TITLE}" (ID {season.id}).')
            return season.id

        chosen = seasons[0]
        for season in seasons:
            title = (season.title or "").lower()
            slug = (season.slug or "").lower()
            if any(marker in title for marker in ("all year", "all-year", "all season")) or any(
                marker in slug for marker in ("all-year", "all-season")
            ):
                chosen = season
                break

        self.ensure_all_year_meta(chosen.id, log)
        log.add(f'Season price: using season "{chosen.title}" (ID {chosen.id}).')
        return chosen.id

    def ensure_all_year_meta(self, season_id: int, log: ImportLog) -> None:
        """Fill in missing season meta so the season spans every day of every year."""
        year = self.today().year
        defaults = (
            ("mphb_start_date", f"{year}-01-01"),
            ("mphb_end_date", f"{year}-12-31"),
            ("mphb_repeat", "1"),
            ("mphb_repeat_type", "annually"),
            ("mphb_repeat_period", "year"),
            ("mphb_days", [str(day) for day in range(7)]),
        )
        changed = False
        for key, value in defaults:
            if _is_blank(self.store.get_meta(season_id, key)):
                self.store.set_meta(season_id, key, value)
                changed = True
        if self.store.get_meta(season_id, "mphb_repeat_until_date") is None:
            self.store.set_meta(season_id, "mphb_repeat_until_date", "")
            changed = True
        if changed:
            log.add('Season price: ensured "All Year" season meta (start/end + repeat).')

    def upsert_season_price(
        self,
        rate_id: int,
        season_id: int,
        daily_rate: float,
        adults: int,
        children: int,
        log: ImportLog,
    ) -> None:
        existing = self.store.get_meta(rate_id, SEASON_PRICES_META, [])
        if not isinstance(existing, list):
            existing = []
        rows: List[Dict[str, Any]] = [row for row in existing if isinstance(row, dict)]

        payload = build_season_price(daily_rate, adults, children)
        season_key = str(season_id)
        for row in rows:
            if str(row.get("season", "")) == season_key:
                row["price"] = payload
                break
        else:
            rows.append({"season": season_key, "price": payload})

        self.store.set_meta(rate_id, SEASON_PRICES_META, rows)
        log.add(f"Season price set for season ID {season_id} (base price {daily_rate:g}).")

    # Services -------------------------------------------------------------------

    def import_services(self, room_type_id: int, listing: Mapping[str, Any], log: ImportLog) -> List[int]:
        """Mirror positive pricing fees as services attached to the accommodation type."""
        pricing = listing.get("pricing") if isinstance(listing.get("pricing"), Mapping) else {}
        service_ids: List[int] = []
        for key, title in FEE_SERVICES:
            amount = coerce_number(pricing.get(key))
            if amount is None or amount <= 0:
                continue
            service_id = self.upsert_service(key, title, amount, log)
            if service_id:
                service_ids.append(service_id)

        if not service_ids:
            log.add("Services: none found in Hostfully pricing.")
            return []
        self.assign_services(room_type_id, service_ids, log)
        return service_ids

    def upsert_service(self, key: str, title: str, price: float, log: ImportLog) -> int:
        existing = self.store.find_by_meta(RecordType.SERVICE.value, SERVICE_KEY_META, key)
        service = self.store.save_record(
            RecordType.SERVICE.value,
            record_id=existing.id if existing is not None else None,
            title=title,
        )
        for meta_key, value in (
            (SERVICE_KEY_META, key),
            ("mphb_price", str(round_half_up(price))),
            ("mphb_price_periodicity", "once"),
            ("mphb_min_quantity", "1"),
            ("mphb_is_auto_limit", "0"),
            ("mphb_max_quantity", "0"),
            ("mphb_price_quantity", "once"),
        ):
            self.store.set_meta(service.id, meta_key, value)
        log.add(f"{'Updated' if existing is not None else 'Created'} service OK: {service.id} ({title})")
        return service.id

    def assign_services(self, room_type_id: int, service_ids: List[int], log: ImportLog) -> None:
        existing = self.store.get_meta(room_type_id, SERVICES_META, [])
        current = existing if isinstance(existing, list) else []
        merged: List[str] = []
        for value in [*current, *service_ids]:
            if str(value) not in merged:
                merged.append(str(value))
        self.store.set_meta(room_type_id, SERVICES_META, merged)
        log.add("Services assigned (mphb_services): " + ", ".join(merged))
