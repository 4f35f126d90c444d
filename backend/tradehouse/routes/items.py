# Overview: Flask API routes for items and shop/cold stock transfers.

from flask import Blueprint, request, jsonify

from ..services import inventory_service
from ..validation import ValidationError, optional_id, optional_text
from .errors import SERVICE_ERRORS, error_response, internal_error


items_bp = Blueprint("items", __name__, url_prefix="/api/items")

OPENING_STOCK_FIELDS = tuple(
    f"{bucket}_{field}"
    for bucket in inventory_service.BUCKETS
    for field in inventory_service.STOCK_FIELDS
)


@items_bp.get("")
def list_items_route():
    items = inventory_service.list_items()
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@items_bp.post("")
def create_item_route():
    """
    Create an item.

    Request body:
    {
        "name": "Mango",            // required, unique
        "item_code": 10001,         // optional 5-digit code; generated if omitted
        "shop_quantity": 0, ...     // optional opening stock per bucket
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        item = inventory_service.create_item(
            name=data.get("name"),
            item_code=optional_id(data.get("item_code"), "item_code"),
            description=optional_text(data.get("description")),
            **{key: data[key] for key in OPENING_STOCK_FIELDS if key in data},
        )
        return jsonify(item.to_dict()), 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create item")


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    try:
        return jsonify(inventory_service.get_item(item_id).to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)


@items_bp.post("/<int:item_id>/transfer")
def transfer_item_route(item_id: int):
    """
    Move stock between buckets.

    Request body:
    {
        "from": "shop",             // shop or cold
        "to": "cold",
        "quantity": 5,
        "net_weight": 50,
        "gross_weight": 55
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        if not data.get("from") or not data.get("to"):
            raise ValidationError("from and to buckets are required")
        item = inventory_service.transfer_stock(
            item_id,
            from_bucket=str(data["from"]).lower(),
            to_bucket=str(data["to"]).lower(),
            quantity=data.get("quantity", 0),
            net_weight=data.get("net_weight", 0),
            gross_weight=data.get("gross_weight", 0),
        )
        return jsonify(item.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"transfer stock for item {item_id}")
