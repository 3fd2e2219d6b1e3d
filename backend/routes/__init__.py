# routes/__init__.py
"""
Blueprint registration helper
"""

def register_blueprints(app):
    """Register all application blueprints"""
    from routes.health import health_bp
    from routes.songs import songs_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(songs_bp)
