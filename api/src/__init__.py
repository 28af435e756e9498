"""FastAPI Todo service.

This package provides the sample Todo API exercised by the integration
harness: a weather forecast stub and a TodoItems resource stored in
PostgreSQL.
"""

__version__ = "0.1.0"
