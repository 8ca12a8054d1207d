"""Backend package for the MedDigest Flask app.

The main entry point is `create_app()` from `backend.app`.

Modules:
- app: Flask application factory
- errors: error taxonomy mapped to JSON responses
- blueprints/: Route handlers organized by feature
- schemas/: pydantic request and record schemas
- services/: Service layer modules
- utils/: Validation helpers
"""

from .app import create_app

__all__ = ["create_app"]
