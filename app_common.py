from flask import current_app, request

from errors import InvalidArgument

# ---------- Request helpers shared by the app and its blueprints ----------
def body() -> dict:
    d = request.get_json(force=True, silent=True)
    if d is None:
        return {}
    if not isinstance(d, dict):
        raise InvalidArgument("invalid_body")
    return d

def get_or_400(d, key, cast=int):
    if key not in d or d[key] in (None, ""):
        raise InvalidArgument(f"missing_{key}")
    v = d[key]
    if cast is int and (isinstance(v, bool) or (isinstance(v, float) and not v.is_integer())):
        raise InvalidArgument(f"invalid_{key}")
    if cast is str and not isinstance(v, str):
        raise InvalidArgument(f"invalid_{key}")
    try:
        return cast(v)
    except (TypeError, ValueError):
        raise InvalidArgument(f"invalid_{key}")

def text_field(d, key, strip=True) -> str:
    """Optional string field; absent or null reads as ""."""
    v = d.get(key)
    if v is None:
        return ""
    if not isinstance(v, str):
        raise InvalidArgument(f"invalid_{key}")
    return v.strip() if strip else v

def pagination():
    try:
        limit = max(1, min(int(request.args.get("limit", 25)), 100))
        offset = max(0, int(request.args.get("offset", 0)))
    except ValueError:
        raise InvalidArgument("bad_pagination")
    return limit, offset

def current_store():
    return current_app.config["STORE"]

def current_rng():
    return current_app.config["RNG"]

def current_now():
    return current_app.config["CLOCK"]()
