"""
Serverless Entry Point

Bridges the serverless Python runtime and the commission settlement API.
The runtime calls this module for every request to /api/*; the Flask app
routes them through the blueprints in app/api/.
"""

from app import create_app

# Create the Flask application instance
app = create_app()
