import os
import tempfile
from pathlib import Path

# The engine is created when chorely.webapp is imported, so the database
# location has to be set before any test module imports it.
_DB_DIR = Path(tempfile.mkdtemp(prefix="chorely-tests-"))
os.environ["CHORELY_SQLITE"] = str(_DB_DIR / "chorely-test.db")
os.environ["CHORELY_SEED_DEFAULTS"] = "0"
os.environ.pop("CHORELY_LOG_PATH", None)
os.environ.setdefault("CHORELY_PASSWORD", "1234")
