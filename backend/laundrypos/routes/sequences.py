# Overview: Read-only view of the id counters for operators.

from flask import Blueprint, jsonify

from ..decorators import require_auth
from ..services import sequence_service

sequences_bp = Blueprint("sequences", __name__, url_prefix="/api/sequences")


@sequences_bp.get("")
@require_auth
def list_sequences_route():
    store = sequence_service.get_counter_store()
    return jsonify({
        "store": store.name,
        "durable": store.durable,
        "sequences": sequence_service.list_counters(store),
    }), 200
