import os

# The web app creates its snapshot store at import time
os.environ.setdefault("LOAN_SNAPSHOT_DATABASE_URL", "sqlite:///:memory:")
