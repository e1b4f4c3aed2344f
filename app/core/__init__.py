"""
Core infrastructure shared by every app.

Modules:
    - core.models: BaseModel (created_at / updated_at timestamps)
    - core.services: ErrorKind, ServiceResult, BaseService
    - core.exceptions: Exception classes per ErrorKind and the DRF exception handler
    - core.views: Health check endpoint

Note:
    Nothing is re-exported here. core is an installed app, so importing models
    or DRF from this package would run before the app registry is ready.
    Import directly from the modules:
        from core.services import BaseService, ErrorKind, ServiceResult
        from core.models import BaseModel
"""
