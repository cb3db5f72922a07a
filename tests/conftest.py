import os

# The HTTP adapter builds its engine at import time; tests supply their own sessions.
os.environ.setdefault('DATABASE_URL', 'sqlite://')
