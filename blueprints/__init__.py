"""
Blueprint registration for PrepPilot Pro.

All blueprints are registered without URL prefixes.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.syllabus import bp as syllabus_bp
    from blueprints.mocks import bp as mocks_bp
    from blueprints.timer import bp as timer_bp
    from blueprints.insights import bp as insights_bp
    from blueprints.ai import bp as ai_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(syllabus_bp)
    app.register_blueprint(mocks_bp)
    app.register_blueprint(timer_bp)
    app.register_blueprint(insights_bp)
    app.register_blueprint(ai_bp)
