from typing import Any, List, Optional


def parse_mongo_data(data):
    if isinstance(data, list):
        return [parse_mongo_data(item) for item in data]
    if isinstance(data, dict):
        if "_id" in data:
            data["_id"] = str(data["_id"])
        return {k: parse_mongo_data(v) for k, v in data.items()}
    return data


def ref_id(value: Any) -> Optional[str]:
    """
    String form of a reference that may be a raw id, an ObjectId, or an
    already expanded document ({"id": ...} / {"_id": ...}).
    """
    if value is None:
        return None
    if isinstance(value, dict):
        inner = value.get("id", value.get("_id"))
        return str(inner) if inner is not None else None
    text = str(value)
    return text or None


def ref_ids(value: Any) -> List[str]:
    """Like ref_id, for fields stored either as a single reference or a list of them."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set)) else [value]
    return [rid for rid in (ref_id(item) for item in items) if rid]
