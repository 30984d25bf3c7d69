"""
Shared module for infrastructure used by the traceability API and CLI.

STRUCTURE:
- shared.infrastructure: Database
  - db.py: SQLAlchemy engine and sessions, transaction()

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: RecipeShape, ClosureMode, seed catalogs

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Pydantic input and read models

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, transaction
    from shared.config.settings import settings
    from shared.config.constants import RecipeShape, ClosureMode
    from shared.utils.exceptions import NotFoundError, IntegrityError
"""
