"""
Client-side order aggregation over carrier package rows.

The carrier does not aggregate anything for us; summaries, search filters
and analytics are computed here from normalized rows
(see normalizers.normalize_package_row).
"""

from collections import Counter
from datetime import timedelta

from django.utils import timezone

from .normalizers import parse_carrier_date

HIGH_VALUE_AMOUNT   = 10000
MEDIUM_VALUE_AMOUNT = 5000
TOP_N               = 10
MAX_SUGGESTIONS     = 5


def empty_summary() -> dict:
    return {
        "total_orders":         0,
        "pending_orders":       0,
        "in_transit_orders":    0,
        "delivered_orders":     0,
        "cancelled_orders":     0,
        "total_amount":         0.0,
        "total_cod_amount":     0.0,
        "total_prepaid_amount": 0.0,
    }


def delivery_status(row) -> str:
    status = (row.get("status") or "").lower()
    if "delivered" in status:
        return "delivered"
    if "cancelled" in status or "rto" in status:
        return "cancelled"
    if "transit" in status or "shipped" in status:
        return "in_transit"
    if "picked" in status:
        return "picked_up"
    if "manifest" in status:
        return "ready_for_pickup"
    return "pending"


def expected_delivery_days(row) -> int:
    return 2 if row.get("shipping_mode") == "Express" else 5


def days_since_order(row, today=None):
    ordered = parse_carrier_date(row.get("order_date"))
    if ordered is None:
        return None
    return ((today or timezone.localdate()) - ordered).days


def is_delayed(row, today=None) -> bool:
    days = days_since_order(row, today)
    if days is None:
        return False
    return days > expected_delivery_days(row) and "delivered" not in (row.get("status") or "").lower()


def priority(row, today=None) -> str:
    amount = row.get("total_amount") or 0
    if is_delayed(row, today) or amount > HIGH_VALUE_AMOUNT or (row.get("payment_mode") or "").lower() == "cod":
        return "high"
    if amount > MEDIUM_VALUE_AMOUNT:
        return "medium"
    return "low"


def enhance_rows(rows, today=None) -> list:
    today = today or timezone.localdate()
    enhanced = []
    for row in rows:
        enhanced.append({
            **row,
            "days_since_order": days_since_order(row, today),
            "is_delayed":       is_delayed(row, today),
            "priority":         priority(row, today),
            "delivery_status":  delivery_status(row),
        })
    return enhanced


def summarize(rows) -> dict:
    summary = empty_summary()
    summary["total_orders"] = len(rows)
    for row in rows:
        bucket = delivery_status(row)
        if bucket == "delivered":
            summary["delivered_orders"] += 1
        elif bucket == "cancelled":
            summary["cancelled_orders"] += 1
        elif bucket == "in_transit":
            summary["in_transit_orders"] += 1
        else:
            summary["pending_orders"] += 1

        amount = row.get("total_amount") or 0.0
        summary["total_amount"] += amount
        if (row.get("payment_mode") or "").lower() == "cod":
            summary["total_cod_amount"] += amount
        else:
            summary["total_prepaid_amount"] += amount
    return summary


# ── Filtering / sorting / paging ─────────────────────────────────────────────

def _in_list(value, allowed):
    if not allowed:
        return True
    if isinstance(allowed, str):
        allowed = [a for a in allowed.split(",") if a]
    return (value or "").lower() in {a.lower() for a in allowed}


def filter_rows(rows, status=None, payment_mode=None, state=None, city=None,
                from_date=None, to_date=None):
    from_day = parse_carrier_date(from_date)
    to_day   = parse_carrier_date(to_date)
    kept = []
    for row in rows:
        if not (_in_list(row.get("status"), status) and _in_list(row.get("payment_mode"), payment_mode)
                and _in_list(row.get("state"), state) and _in_list(row.get("city"), city)):
            continue
        ordered = parse_carrier_date(row.get("order_date"))
        if from_day and (ordered is None or ordered < from_day):
            continue
        if to_day and (ordered is None or ordered > to_day):
            continue
        kept.append(row)
    return kept


_SORT_KEYS = {
    "date":    lambda r: str(r.get("order_date") or ""),
    "status":  lambda r: (r.get("status") or "").lower(),
    "amount":  lambda r: r.get("total_amount") or 0,
    "waybill": lambda r: r.get("waybill") or "",
}


def sort_rows(rows, sort_by="date", sort_order="desc"):
    key = _SORT_KEYS.get(sort_by, _SORT_KEYS["date"])
    return sorted(rows, key=key, reverse=(sort_order != "asc"))


def paginate(rows, page=1, limit=50):
    page  = max(int(page or 1), 1)
    limit = max(int(limit or 50), 1)
    total = len(rows)
    start = (page - 1) * limit
    return rows[start:start + limit], {
        "page":              page,
        "limit":             limit,
        "total":             total,
        "total_pages":       (total + limit - 1) // limit,
        "has_next_page":     page * limit < total,
        "has_previous_page": page > 1,
    }


def _contains(haystack, needle) -> bool:
    return needle.lower() in str(haystack or "").lower()


def search_rows(rows, query=None, customer_name=None, customer_phone=None,
                customer_email=None, address=None, pincode=None,
                amount_min=None, amount_max=None):
    if query:
        fields = ("waybill", "reference_number", "customer_name", "customer_phone",
                  "customer_email", "address", "city", "state")
        rows = [r for r in rows if any(_contains(r.get(f), query) for f in fields)]
    if customer_name:
        rows = [r for r in rows if _contains(r.get("customer_name"), customer_name)]
    if customer_phone:
        rows = [r for r in rows if customer_phone in (r.get("customer_phone") or "")]
    if customer_email:
        rows = [r for r in rows if _contains(r.get("customer_email"), customer_email)]
    if address:
        rows = [r for r in rows if _contains(r.get("address"), address)]
    if pincode:
        rows = [r for r in rows if pincode in (r.get("pincode") or "")]
    if amount_min is not None:
        rows = [r for r in rows if (r.get("total_amount") or 0) >= amount_min]
    if amount_max is not None:
        rows = [r for r in rows if (r.get("total_amount") or 0) <= amount_max]
    return rows


def search_suggestions(rows, query=None) -> list:
    suggestions = []
    if not rows:
        if query:
            suggestions.append(f'Try searching for "{query}" in customer names')
            suggestions.append(f'Try searching for "{query}" in addresses')
        suggestions.append("Try broadening your date range")
        suggestions.append("Try removing some filters")
    elif len(rows) < 5:
        states = sorted({r["state"] for r in rows if r.get("state")})
        cities = sorted({r["city"] for r in rows if r.get("city")})
        if states:
            suggestions.append(f"Also search in {', '.join(states)}")
        if cities:
            suggestions.append(f"Also search in {', '.join(cities)}")
    return suggestions[:MAX_SUGGESTIONS]


# ── Analytics ────────────────────────────────────────────────────────────────

def _breakdown(counter, total, label):
    return [
        {label: key, "count": count, "percentage": count / total * 100}
        for key, count in counter.most_common()
    ]


def trend_key(day, group_by):
    if group_by == "week":
        # weeks start on Sunday
        return (day - timedelta(days=(day.weekday() + 1) % 7)).isoformat()
    if group_by == "month":
        return day.isoformat()[:7]
    return day.isoformat()


def trends(rows, group_by="day") -> list:
    buckets = {}
    for row in rows:
        day = parse_carrier_date(row.get("order_date"))
        if day is None:
            continue
        key = trend_key(day, group_by)
        bucket = buckets.setdefault(key, {"date": key, "orders": 0, "amount": 0.0})
        bucket["orders"] += 1
        bucket["amount"] += row.get("total_amount") or 0.0
    return [buckets[k] for k in sorted(buckets)]


def _delivery_days(row, today):
    ordered   = parse_carrier_date(row.get("order_date"))
    delivered = parse_carrier_date(row.get("delivery_date") or row.get("last_update")) or today
    if ordered is None:
        return None
    return (delivered - ordered).days


def _delivered(rows):
    return [r for r in rows if "delivered" in (r.get("status") or "").lower()]


def average_delivery_days(rows, today=None) -> float:
    today = today or timezone.localdate()
    spans = [d for d in (_delivery_days(r, today) for r in _delivered(rows)) if d is not None]
    return sum(spans) / len(spans) if spans else 0.0


def on_time_rate(rows, today=None) -> float:
    today = today or timezone.localdate()
    delivered = _delivered(rows)
    if not delivered:
        return 0.0
    on_time = 0
    for row in delivered:
        days = _delivery_days(row, today)
        if days is not None and days <= expected_delivery_days(row):
            on_time += 1
    return on_time / len(delivered) * 100


def build_analytics(rows, group_by="day", today=None) -> dict:
    total = len(rows)
    if total == 0:
        return {
            "total_orders": 0, "total_amount": 0.0, "average_order_value": 0.0,
            "delivery_rate": 0.0, "cancellation_rate": 0.0, "returns_rate": 0.0,
            "cod_percentage": 0.0, "prepaid_percentage": 0.0,
            "top_states": [], "top_cities": [], "status_breakdown": [], "trends": [],
            "performance": {"average_delivery_days": 0.0, "on_time_delivery_rate": 0.0},
        }

    total_amount = sum(r.get("total_amount") or 0.0 for r in rows)
    statuses     = Counter(r.get("status") or "Unknown" for r in rows)
    payment      = Counter(r.get("payment_mode") for r in rows)
    states       = Counter(r.get("state") or "Unknown" for r in rows)
    cities       = Counter(r.get("city") or "Unknown" for r in rows)

    return {
        "total_orders":        total,
        "total_amount":        total_amount,
        "average_order_value": total_amount / total,
        "delivery_rate":       statuses.get("Delivered", 0) / total * 100,
        "cancellation_rate":   statuses.get("Cancelled", 0) / total * 100,
        "returns_rate":        statuses.get("RTO", 0) / total * 100,
        "cod_percentage":      payment.get("COD", 0) / total * 100,
        "prepaid_percentage":  payment.get("Prepaid", 0) / total * 100,
        "top_states":          _breakdown(states, total, "state")[:TOP_N],
        "top_cities":          _breakdown(cities, total, "city")[:TOP_N],
        "status_breakdown":    _breakdown(statuses, total, "status"),
        "trends":              trends(rows, group_by),
        "performance": {
            "average_delivery_days": average_delivery_days(rows, today),
            "on_time_delivery_rate": on_time_rate(rows, today),
        },
    }
