"""Study analysis routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

import analytics
from helpers import current_gate, ready_required, today
from profile_model import ProfileError
from views import build_analysis

bp = Blueprint("insights", __name__)


@bp.route("/api/analysis")
@ready_required
def api_analysis():
    range_name = request.args.get("range", "Week")
    if range_name not in analytics.RANGES:
        raise ProfileError(f"Unknown range: {range_name}")
    return jsonify(build_analysis(current_gate().profile, range_name, today()))


@bp.route("/api/analysis/heatmap")
@ready_required
def api_heatmap():
    year = request.args.get("year", type=int) or today().year
    return jsonify({"year": year, "days": analytics.heatmap(current_gate().profile.history, year)})
